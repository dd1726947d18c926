"""paperdraft MCP server - research paper drafting, AI rewriting and PDF export."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from paperdraft.apis.generation import GenerationClient
from paperdraft.auth import AuthProvider
from paperdraft.config import Settings
from paperdraft.db.papers_store import PaperStore
from paperdraft.editor.session import EditorSession
from paperdraft.paper.model import CITATION_TYPES, PAPER_FORMATS, Citation
from paperdraft.paper.renderer import FileSaver, PaperRenderer, to_data_uri


logger = logging.getLogger("paperdraft")

ToolHandler = Callable[..., Awaitable[dict]]


def _schema(properties: Optional[dict] = None, required: Optional[list[str]] = None) -> dict:
    return {
        "type": "object",
        "properties": properties or {},
        "required": required or [],
    }


_STRING = {"type": "string"}
_STRING_LIST = {"type": "array", "items": {"type": "string"}}
_FORMAT = {"type": "string", "enum": list(PAPER_FORMATS)}


TOOL_DEFINITIONS = [
    Tool(
        name="sign_in",
        description="Sign in as a user. Returns a session token that can restore the session later.",
        inputSchema=_schema(
            {"user_id": _STRING, "email": _STRING, "display_name": _STRING, "token": _STRING},
            [],
        ),
    ),
    Tool(
        name="sign_out",
        description="Sign out the current user.",
        inputSchema=_schema(),
    ),
    Tool(
        name="list_papers",
        description="List the current user's papers, most recently modified first.",
        inputSchema=_schema(),
    ),
    Tool(
        name="create_paper",
        description="Create an empty paper and open it.",
        inputSchema=_schema({"title": _STRING, "abstract": _STRING}, ["title"]),
    ),
    Tool(
        name="create_paper_from_topic",
        description="Generate a complete paper (abstract, sections, citations) for a research topic and open it.",
        inputSchema=_schema({"topic": _STRING}, ["topic"]),
    ),
    Tool(
        name="open_paper",
        description="Open one of the current user's papers by id.",
        inputSchema=_schema({"paper_id": _STRING}, ["paper_id"]),
    ),
    Tool(
        name="delete_paper",
        description="Delete the open paper.",
        inputSchema=_schema(),
    ),
    Tool(
        name="update_title",
        description="Set the title of the open paper.",
        inputSchema=_schema({"title": _STRING}, ["title"]),
    ),
    Tool(
        name="update_abstract",
        description="Set the abstract of the open paper.",
        inputSchema=_schema({"abstract": _STRING}, ["abstract"]),
    ),
    Tool(
        name="add_section",
        description="Add a section to the open paper. Without an order it goes last.",
        inputSchema=_schema(
            {"title": _STRING, "content": _STRING, "order": {"type": "integer"}},
            ["title"],
        ),
    ),
    Tool(
        name="update_section",
        description="Replace the content of a section.",
        inputSchema=_schema({"section_id": _STRING, "content": _STRING}, ["section_id", "content"]),
    ),
    Tool(
        name="delete_section",
        description="Remove a section from the open paper.",
        inputSchema=_schema({"section_id": _STRING}, ["section_id"]),
    ),
    Tool(
        name="regenerate_section",
        description="Generate text for a section from a prompt and append it to the section.",
        inputSchema=_schema({"section_id": _STRING, "prompt": _STRING}, ["section_id", "prompt"]),
    ),
    Tool(
        name="regenerate_abstract",
        description="Replace the abstract with text generated from a prompt.",
        inputSchema=_schema({"prompt": _STRING}, ["prompt"]),
    ),
    Tool(
        name="generate_title",
        description="Suggest a paper title for a topic and keywords.",
        inputSchema=_schema({"topic": _STRING, "keywords": _STRING_LIST}, ["topic"]),
    ),
    Tool(
        name="generate_outline",
        description="Suggest an outline (section titles with descriptions) for a title.",
        inputSchema=_schema({"title": _STRING, "keywords": _STRING_LIST}, ["title"]),
    ),
    Tool(
        name="analyze_paragraph",
        description="Get writing suggestions (clarity, structure, style, grammar, citation) for a passage.",
        inputSchema=_schema({"text": _STRING}, ["text"]),
    ),
    Tool(
        name="generate_abstract",
        description="Suggest an abstract for a title and its main points.",
        inputSchema=_schema({"title": _STRING, "main_points": _STRING_LIST}, ["title"]),
    ),
    Tool(
        name="suggest_citations",
        description="Find citations relevant to a passage, with formatted reference text.",
        inputSchema=_schema({"text": _STRING}, ["text"]),
    ),
    Tool(
        name="format_paper",
        description="Format the open paper in a citation style.",
        inputSchema=_schema({"style": _FORMAT}),
    ),
    Tool(
        name="validate_formatting",
        description="Check a passage against a citation style and list the issues found.",
        inputSchema=_schema({"content": _STRING, "style": _FORMAT}, ["content"]),
    ),
    Tool(
        name="fetch_citations",
        description="Look up citation records for a topic.",
        inputSchema=_schema({"topic": _STRING}, ["topic"]),
    ),
    Tool(
        name="add_citation",
        description="Attach a citation to the open paper.",
        inputSchema=_schema(
            {
                "title": _STRING,
                "authors": _STRING_LIST,
                "year": _STRING,
                "type": {"type": "string", "enum": list(CITATION_TYPES)},
                "journal": _STRING,
                "doi": _STRING,
                "url": _STRING,
            },
            ["title"],
        ),
    ),
    Tool(
        name="delete_citation",
        description="Remove a citation from the open paper.",
        inputSchema=_schema({"citation_id": _STRING}, ["citation_id"]),
    ),
    Tool(
        name="preview",
        description="Render the open paper and summarize its pages. Set include_pdf for a PDF data URI.",
        inputSchema=_schema({"include_pdf": {"type": "boolean"}}),
    ),
    Tool(
        name="download_pdf",
        description="Export the open paper as a PDF file named after its title.",
        inputSchema=_schema(),
    ),
    Tool(
        name="get_status",
        description="Show the signed-in user, the open paper and AI processing status.",
        inputSchema=_schema(),
    ),
]


def _paper_summary(paper) -> dict:
    return {
        "id": paper.id,
        "title": paper.title,
        "sections": len(paper.sections),
        "citations": len(paper.citations),
        "word_count": paper.total_word_count(),
        "last_modified": paper.last_modified.isoformat() if paper.last_modified else None,
    }


def build_tool_handlers(session: EditorSession) -> dict[str, ToolHandler]:
    """Map tool names to handlers bound to one editing session."""

    async def sign_in(user_id: str = "", email: str = "", display_name: str = "", token: str = "") -> dict:
        if token:
            user = session.auth.restore_session(token)
            if user is None:
                return {"success": False, "error": "Invalid or expired session token"}
            return {"success": True, "user": user.to_dict(), "token": token}
        if not user_id or not email:
            return {"success": False, "error": "user_id and email are required"}
        new_token = session.auth.sign_in(user_id, email, display_name)
        return {"success": True, "user": session.auth.current_user.to_dict(), "token": new_token}

    async def sign_out() -> dict:
        session.auth.sign_out()
        return {"success": True}

    async def list_papers() -> dict:
        papers = await session.list_papers()
        return {"papers": [_paper_summary(p) for p in papers]}

    async def create_paper(title: str, abstract: str = "") -> dict:
        paper = await session.create_paper(title, abstract)
        return {"success": True, "paper": paper.to_dict()}

    async def create_paper_from_topic(topic: str) -> dict:
        paper = await session.create_from_topic(topic)
        return {"success": True, "paper": paper.to_dict()}

    async def open_paper(paper_id: str) -> dict:
        paper = await session.open_paper(paper_id)
        return {
            "paper": paper.to_dict(),
            "sections": [s.to_dict() for s in session.sections],
        }

    async def delete_paper() -> dict:
        await session.delete_paper()
        return {"success": True}

    async def update_title(title: str) -> dict:
        paper = await session.update_title(title)
        return {"success": True, "title": paper.title}

    async def update_abstract(abstract: str) -> dict:
        await session.update_abstract(abstract)
        return {"success": True}

    async def add_section(title: str, content: str = "", order: Optional[int] = None) -> dict:
        section = await session.add_section(title, content, order)
        return {"success": True, "section": section.to_dict()}

    async def update_section(section_id: str, content: str) -> dict:
        section = await session.update_section_content(section_id, content)
        return {"success": True, "section": section.to_dict()}

    async def delete_section(section_id: str) -> dict:
        await session.delete_section(section_id)
        return {"success": True}

    async def regenerate_section(section_id: str, prompt: str) -> dict:
        section = await session.regenerate_section(section_id, prompt)
        return {"success": True, "section": section.to_dict()}

    async def regenerate_abstract(prompt: str) -> dict:
        paper = await session.regenerate_abstract(prompt)
        return {"success": True, "abstract": paper.abstract}

    async def generate_title(topic: str, keywords: Optional[list[str]] = None) -> dict:
        return {"title": await session.generator.generate_title(topic, keywords)}

    async def generate_outline(title: str, keywords: Optional[list[str]] = None) -> dict:
        outline = await session.generator.generate_outline(title, keywords)
        return {"sections": [s.to_dict() for s in outline]}

    async def analyze_paragraph(text: str) -> dict:
        suggestions = await session.analyze(text)
        return {"suggestions": [s.to_dict() for s in suggestions]}

    async def generate_abstract(title: str, main_points: Optional[list[str]] = None) -> dict:
        return {"abstract": await session.generator.generate_abstract(title, main_points)}

    async def suggest_citations(text: str) -> dict:
        citations = await session.generator.suggest_citations(text)
        return {"citations": [c.to_dict() for c in citations]}

    async def format_paper(style: str = "APA") -> dict:
        return {"style": style, "formatted": await session.format_paper(style)}

    async def validate_formatting(content: str, style: str = "IEEE") -> dict:
        return await session.generator.validate_formatting(content, style)

    async def fetch_citations(topic: str) -> dict:
        citations = await session.generator.fetch_citations(topic)
        return {"citations": [c.to_dict() for c in citations]}

    async def add_citation(title: str, **fields: Any) -> dict:
        citation = Citation.from_dict({"title": title, **fields})
        added = await session.add_citation(citation)
        return {"success": True, "citation": added.to_dict()}

    async def delete_citation(citation_id: str) -> dict:
        await session.delete_citation(citation_id)
        return {"success": True}

    async def preview(include_pdf: bool = False) -> dict:
        document = session.refresh_preview()
        result = {
            "page_count": document.page_count if document else 0,
            "pages": [
                {
                    "number": page.number,
                    "blocks": [
                        {"kind": b.kind, "lines": len(b.lines), "top": round(b.y, 2), "bottom": round(b.bottom, 2)}
                        for b in page.blocks
                    ],
                }
                for page in (document.pages if document else ())
            ],
            "error": session.preview_state.error,
        }
        if include_pdf:
            pdf = session.preview_pdf()
            result["pdf"] = to_data_uri(pdf) if pdf is not None else None
        return result

    async def download_pdf() -> dict:
        path = session.download()
        return {"success": True, "path": str(path)}

    async def get_status() -> dict:
        user = session.auth.current_user
        return {
            "user": user.to_dict() if user else None,
            "paper": _paper_summary(session.paper) if session.paper else None,
            "status": session.status.status.to_dict(),
            "preview_error": session.preview_state.error,
        }

    return {
        "sign_in": sign_in,
        "sign_out": sign_out,
        "list_papers": list_papers,
        "create_paper": create_paper,
        "create_paper_from_topic": create_paper_from_topic,
        "open_paper": open_paper,
        "delete_paper": delete_paper,
        "update_title": update_title,
        "update_abstract": update_abstract,
        "add_section": add_section,
        "update_section": update_section,
        "delete_section": delete_section,
        "regenerate_section": regenerate_section,
        "regenerate_abstract": regenerate_abstract,
        "generate_title": generate_title,
        "generate_outline": generate_outline,
        "analyze_paragraph": analyze_paragraph,
        "generate_abstract": generate_abstract,
        "suggest_citations": suggest_citations,
        "format_paper": format_paper,
        "validate_formatting": validate_formatting,
        "fetch_citations": fetch_citations,
        "add_citation": add_citation,
        "delete_citation": delete_citation,
        "preview": preview,
        "download_pdf": download_pdf,
        "get_status": get_status,
    }


async def execute_tool(handlers: dict[str, ToolHandler], name: str, arguments: dict[str, Any]) -> str:
    """Run a tool and return its JSON result; failures become ``{"error": ...}``."""
    if name not in handlers:
        return json.dumps({"error": f"Unknown tool: {name}"})

    try:
        result = await handlers[name](**(arguments or {}))
    except Exception as e:
        logger.exception(f"Error in tool {name}")
        return json.dumps({"error": str(e)})

    return json.dumps(result, indent=2, ensure_ascii=False)


def build_session(settings: Settings) -> EditorSession:
    if settings.uses_dev_secret:
        logger.warning("PAPERDRAFT_JWT_SECRET is not set; session tokens are signed with the development secret")
    return EditorSession(
        store=PaperStore(settings.db_path),
        generator=GenerationClient(settings.api_url, timeout=settings.api_timeout),
        renderer=PaperRenderer(saver=FileSaver(Path(settings.output_dir))),
        auth=AuthProvider(settings.jwt_secret, settings.jwt_expiry),
    )


def create_server(session: EditorSession) -> Server:
    server = Server("paperdraft-mcp")
    handlers = build_tool_handlers(session)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return TOOL_DEFINITIONS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        return [TextContent(type="text", text=await execute_tool(handlers, name, arguments))]

    return server


async def run_server(settings: Settings):
    session = build_session(settings)
    server = create_server(session)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await session.generator.close()


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
    asyncio.run(run_server(settings))


if __name__ == "__main__":
    main()
