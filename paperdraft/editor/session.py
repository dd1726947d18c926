"""Editing session: ties the store, generation service and renderer together."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

from paperdraft.apis.generation import GenerationClient, GenerationError
from paperdraft.auth import AuthProvider
from paperdraft.db.papers_store import PaperStore, PaperNotFound, StoreError
from paperdraft.editor.status import AgentStatusController
from paperdraft.paper.layout import Document, LayoutError
from paperdraft.paper.model import (
    PAPER_SECTIONS,
    Citation,
    Paper,
    Section,
    Suggestion,
    default_sections,
    new_id,
    sort_sections,
)
from paperdraft.paper.renderer import PaperRenderer, write_pdf


logger = logging.getLogger("paperdraft.editor")


class NoPaperOpen(RuntimeError):
    pass


class PreviewState:
    """Last good preview plus a ticket counter so stale results are dropped.

    Every render request takes a ticket from ``begin``. A result is kept only
    if no newer result has been stored already.
    """

    def __init__(self):
        self.document: Optional[Document] = None
        self.error: Optional[str] = None
        self._issued = 0
        self._applied = 0

    def begin(self) -> int:
        self._issued += 1
        return self._issued

    def complete(self, ticket: int, document: Document) -> bool:
        if ticket < self._applied:
            return False
        self._applied = ticket
        self.document = document
        self.error = None
        return True

    def fail(self, ticket: int, message: str) -> bool:
        # The previous document stays visible
        if ticket < self._applied:
            return False
        self._applied = ticket
        self.error = message
        return True


class EditorSession:
    """One user's editing session on one paper at a time."""

    def __init__(
        self,
        store: PaperStore,
        generator: GenerationClient,
        renderer: PaperRenderer,
        auth: AuthProvider,
    ):
        self.store = store
        self.generator = generator
        self.renderer = renderer
        self.auth = auth

        self.paper: Optional[Paper] = None
        self.sections: list[Section] = []
        self.status = AgentStatusController()
        self.preview_state = PreviewState()

    @property
    def owner_id(self) -> str:
        return self.auth.require_user().id

    def _require_paper(self) -> Paper:
        if self.paper is None:
            raise NoPaperOpen("No paper selected")
        return self.paper

    def _set_paper(self, paper: Paper) -> None:
        self.paper = paper
        self.sections = sort_sections(paper.sections or default_sections())
        self.refresh_preview()

    # Papers

    async def list_papers(self) -> list[Paper]:
        return await self.store.list_all(self.owner_id)

    async def create_paper(self, title: str, abstract: str = "") -> Paper:
        paper = await self.store.create_paper(self.owner_id, title, abstract)
        self._set_paper(paper)
        return paper

    async def open_paper(self, paper_id: str) -> Paper:
        paper = await self.store.get(self.owner_id, paper_id)
        if paper is None:
            raise PaperNotFound("Paper not found")
        self._set_paper(paper)
        return paper

    async def delete_paper(self) -> None:
        paper = self._require_paper()
        await self.store.delete(self.owner_id, paper.id)
        self.paper = None
        self.sections = []
        self.preview_state = PreviewState()

    async def create_from_topic(self, topic: str) -> Paper:
        """Generate a whole paper for a topic, with citations, and open it."""
        owner_id = self.owner_id
        self.status.start("Generating paper")
        try:
            generated = await self.generator.generate_paper(topic)
            self.status.set_progress(40)

            abstract = generated.get("Abstract", "")
            if not abstract:
                raise GenerationError("Failed to generate paper abstract")

            sections = []
            for title in PAPER_SECTIONS:
                if title == "Abstract":
                    continue
                content = generated.get(title)
                if not content:
                    raise GenerationError(f"Failed to generate content for section: {title}")
                sections.append(Section(
                    id=new_id(),
                    title=title,
                    content=content,
                    order=PAPER_SECTIONS.index(title),
                ))
            self.status.set_progress(70)

            citations = await self.generator.fetch_citations(topic)
            self.status.set_progress(90)

            paper = await self.store.put(owner_id, Paper(
                id=new_id(),
                title=topic,
                abstract=abstract,
                owner_id=owner_id,
                sections=sections,
                citations=citations,
            ))
        except Exception as e:
            self.status.fail(str(e))
            raise

        self.status.finish()
        self._set_paper(paper)
        return paper

    # Edits are applied locally first so the preview follows typing; a failed
    # save restores the previous state.

    async def _save(self, fields: dict, previous: Paper, previous_sections: list[Section]) -> None:
        # Only the saved fields are touched, so overlapping edits to other
        # fields keep their local values.
        try:
            saved = await self.store.update(self.owner_id, previous.id, fields)
        except Exception:
            self.paper = replace(self.paper, **{name: getattr(previous, name) for name in fields})
            if "sections" in fields:
                self.sections = previous_sections
            self.refresh_preview()
            raise

        self.paper = replace(self.paper, last_modified=saved.last_modified)

    async def update_title(self, title: str) -> Paper:
        previous = self._require_paper()
        self.paper = replace(previous, title=title)
        self.refresh_preview()
        await self._save({"title": title}, previous, self.sections)
        return self.paper

    async def update_abstract(self, abstract: str) -> Paper:
        previous = self._require_paper()
        self.paper = replace(previous, abstract=abstract)
        self.refresh_preview()
        await self._save({"abstract": abstract}, previous, self.sections)
        return self.paper

    async def _replace_sections(self, sections: list[Section]) -> None:
        previous = self._require_paper()
        previous_sections = self.sections
        self.sections = sort_sections(sections)
        self.paper = replace(previous, sections=self.sections)
        self.refresh_preview()
        await self._save({"sections": self.sections}, previous, previous_sections)

    def get_section(self, section_id: str) -> Section:
        for section in self.sections:
            if section.id == section_id:
                return section
        raise StoreError(f"Section not found: {section_id}")

    async def update_section_content(self, section_id: str, content: str) -> Section:
        self.get_section(section_id)
        await self._replace_sections([
            replace(s, content=content) if s.id == section_id else s
            for s in self.sections
        ])
        return self.get_section(section_id)

    async def add_section(self, title: str, content: str = "", order: Optional[int] = None) -> Section:
        self._require_paper()
        if order is None:
            order = max((s.order for s in self.sections), default=-1) + 1
        section = Section(id=new_id(), title=title, content=content, order=order)
        await self._replace_sections(self.sections + [section])
        return section

    async def delete_section(self, section_id: str) -> None:
        self.get_section(section_id)
        await self._replace_sections([s for s in self.sections if s.id != section_id])

    async def add_citation(self, citation: Citation) -> Citation:
        paper = self._require_paper()
        added = await self.store.add_citation(self.owner_id, paper.id, citation)
        self.paper = replace(self.paper, citations=self.paper.citations + [added])
        return added

    async def delete_citation(self, citation_id: str) -> None:
        paper = self._require_paper()
        await self.store.delete_citation(self.owner_id, paper.id, citation_id)
        self.paper = replace(
            self.paper,
            citations=[c for c in self.paper.citations if c.id != citation_id],
        )

    # AI-assisted editing

    def _context(self, section_title: str) -> dict:
        paper = self._require_paper()
        return {
            "sectionTitle": section_title,
            "paperTitle": paper.title,
            "abstract": paper.abstract,
        }

    async def regenerate_section(self, section_id: str, prompt: str) -> Section:
        """Generate text from a prompt and append it to a section."""
        if not prompt.strip():
            raise ValueError("Prompt must not be empty")
        section = self.get_section(section_id)

        self.status.start(f"Regenerating {section.title}")
        try:
            self.status.set_progress(30)
            result = await self.generator.improve_writing(
                prompt.strip(), "academic", self._context(section.title)
            )
            self.status.set_progress(60)

            content = f"{section.content}\n\n{result.improved}" if section.content else result.improved
            self.status.set_progress(80)
            updated = await self.update_section_content(section_id, content)
            self.status.set_progress(100)
        except Exception as e:
            self.status.fail(str(e))
            raise

        self.status.finish()
        return updated

    async def regenerate_abstract(self, prompt: str) -> Paper:
        """Replace the abstract with text generated from a prompt."""
        if not prompt.strip():
            raise ValueError("Prompt must not be empty")
        self._require_paper()

        self.status.start("Regenerating Abstract")
        try:
            self.status.set_progress(10)
            result = await self.generator.improve_writing(
                prompt.strip(), "academic", self._context("Abstract")
            )
            self.status.set_progress(80)
            paper = await self.update_abstract(result.improved)
            self.status.set_progress(100)
        except Exception as e:
            self.status.fail(str(e))
            raise

        self.status.finish()
        return paper

    async def analyze(self, text: str) -> list[Suggestion]:
        self.status.start("Analyzing paragraph")
        try:
            suggestions = await self.generator.analyze_paragraph(text)
        except Exception as e:
            self.status.fail(str(e))
            raise

        self.status.clear_suggestions()
        for suggestion in suggestions:
            self.status.add_suggestion(suggestion)
        self.status.finish()
        return suggestions

    async def format_paper(self, style: str = "APA") -> str:
        """Have the service format the open paper, keyed by section title."""
        paper = self._require_paper()
        contents = {"Title": paper.title, "Abstract": paper.abstract}
        for section in self.sections:
            contents[section.title] = section.content
        return await self.generator.format_paper(contents, style)

    # Rendering

    def refresh_preview(self) -> Optional[Document]:
        """Re-render the preview. On failure the last good preview is kept."""
        if self.paper is None:
            return None

        ticket = self.preview_state.begin()
        try:
            document = self.renderer.preview(self.paper, self.sections)
        except LayoutError as e:
            logger.warning(f"Preview render failed: {e}")
            self.preview_state.fail(ticket, str(e))
            return self.preview_state.document

        self.preview_state.complete(ticket, document)
        return self.preview_state.document

    def preview_pdf(self) -> Optional[bytes]:
        """PDF bytes of the last good preview, or None if nothing has rendered yet."""
        paper = self._require_paper()
        if self.preview_state.document is None:
            return None
        return write_pdf(self.preview_state.document, paper.title)

    def download(self) -> Path:
        """Export the open paper as a PDF file. Failures propagate."""
        return self.renderer.download(self._require_paper(), self.sections)
