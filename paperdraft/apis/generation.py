"""Client for the AI text generation service (JSON over HTTP)."""

from pathlib import Path
from typing import Any, Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from paperdraft.paper.model import (
    PAPER_FORMATS,
    WRITING_ASPECTS,
    Citation,
    OutlineSection,
    Suggestion,
    WritingImprovement,
)


TEMPLATES_DIR = Path(__file__).parent / "templates"

PAPER_PROMPT_SECTIONS = [
    {"title": "Abstract", "words": 250, "description": "A concise summary of the research"},
    {"title": "Introduction", "words": 350, "description": "Background and research objectives"},
    {"title": "Literature Review", "words": 450, "description": "Comprehensive review of existing research"},
    {"title": "Methodology", "words": 500, "description": "Include detailed methodology with tables and figures where appropriate"},
    {"title": "Results", "words": None, "description": "Present findings with supporting data"},
    {"title": "Discussion", "words": None, "description": "Analyze results in context of existing literature"},
    {"title": "Conclusion", "words": None, "description": "Summarize key findings and implications"},
    {"title": "References", "words": None, "description": "Include relevant academic citations"},
]

# Length of the excerpt used to anchor suggestions to the analysed text.
CONTEXT_CHARS = 50


class GenerationError(RuntimeError):
    """The generation service rejected a request or could not be reached.

    ``str(error)`` is the service's own error message when it sent one.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GenerationClient:
    """Calls the generation service; every endpoint is a JSON POST."""

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    async def _post(self, endpoint: str, body: dict) -> dict:
        try:
            response = await self.client.post(endpoint, json=body)
        except httpx.HTTPError as e:
            raise GenerationError(f"Failed to reach generation service: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            message = data.get("error") if isinstance(data, dict) else None
            raise GenerationError(message or "API request failed", response.status_code)

        if not isinstance(data, dict):
            raise GenerationError(f"Unexpected response from {endpoint}", response.status_code)

        return data

    def build_paper_prompt(self, topic: str) -> str:
        template = self.env.get_template("full_paper_prompt.j2")
        return template.render(topic=topic, sections=PAPER_PROMPT_SECTIONS)

    async def generate_title(self, topic: str, keywords: Optional[list[str]] = None) -> str:
        data = await self._post("/ai/generate-title", {
            "topic": topic,
            "keywords": keywords or [],
        })
        return data.get("title", "")

    async def generate_abstract(self, title: str, main_points: Optional[list[str]] = None) -> str:
        data = await self._post("/ai/generate-abstract", {
            "title": title,
            "mainPoints": main_points or [],
        })
        return data.get("abstract", "")

    async def generate_outline(self, title: str, keywords: Optional[list[str]] = None) -> list[OutlineSection]:
        data = await self._post("/ai/generate-outline", {
            "title": title,
            "keywords": keywords or [],
        })
        return [
            OutlineSection(title=s.get("title", ""), description=s.get("description", ""))
            for s in data.get("sections", [])
        ]

    async def generate_paper(self, topic: str) -> dict[str, str]:
        """Generate a full paper; returns section title -> content."""
        data = await self._post("/generate-paper", {
            "topic": topic,
            "prompt": self.build_paper_prompt(topic),
        })
        paper = data.get("paper")
        if not isinstance(paper, dict):
            raise GenerationError("Generation service returned no paper")
        return {str(k): str(v or "") for k, v in paper.items()}

    async def improve_writing(
        self,
        text: str,
        aspect: str = "clarity",
        context: Optional[dict[str, Any]] = None,
    ) -> WritingImprovement:
        if aspect not in WRITING_ASPECTS:
            raise ValueError(f"Unknown writing aspect: {aspect}")

        data = await self._post("/api/ai/improve-writing", {
            "prompt": text,
            "aspect": aspect,
            "context": context or {},
        })
        changes = [str(c) for c in data.get("changes", [])]
        return WritingImprovement(
            improved=str(data.get("improved", "")).strip(),
            changes=changes,
            suggestions=[
                Suggestion(
                    type="style",
                    content=change,
                    severity="medium",
                    section=text[:CONTEXT_CHARS],
                    position=i,
                )
                for i, change in enumerate(changes)
            ],
        )

    async def analyze_paragraph(self, content: str) -> list[Suggestion]:
        data = await self._post("/ai/analyze", {"content": content})
        return [
            Suggestion(
                type=s.get("type", "style"),
                content=s.get("content", ""),
                severity=s.get("severity", "medium"),
                section=content[:CONTEXT_CHARS],
                position=content.find(s.get("content", "")),
            )
            for s in data.get("suggestions", [])
        ]

    async def fetch_citations(self, topic: str) -> list[Citation]:
        data = await self._post("/fetch-citations", {"topic": topic})
        return [Citation.from_dict(c) for c in data.get("citations", [])]

    async def suggest_citations(self, text: str) -> list[Citation]:
        """Citations relevant to a passage, with display text filled in."""
        data = await self._post("/ai/citations", {"text": text})
        citations = []
        for raw in data.get("citations", []):
            citation = Citation.from_dict(raw)
            citation.citation_text = citation.format_text()
            citation.id = f"{citation.doi or citation.url or citation.title}-{citation.year}"
            citations.append(citation)
        return citations

    async def format_paper(self, paper: dict[str, str], style: str = "APA") -> str:
        if style not in PAPER_FORMATS:
            raise ValueError(f"Unknown paper format: {style}")
        data = await self._post("/format-paper", {"paper": paper, "style": style})
        return data.get("formattedPaper", "")

    async def validate_formatting(self, content: str, style: str = "IEEE") -> dict:
        if style not in PAPER_FORMATS:
            raise ValueError(f"Unknown paper format: {style}")
        data = await self._post("/ai/validate-format", {"content": content, "style": style})
        return {
            "is_valid": bool(data.get("isValid", False)),
            "issues": list(data.get("issues", [])),
        }

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
