"""Tests for the editing session."""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from paperdraft.apis.generation import GenerationError
from paperdraft.auth import AuthProvider, NotAuthenticated
from paperdraft.db.papers_store import PaperNotFound, PaperStore, StoreError
from paperdraft.editor.session import EditorSession, NoPaperOpen, PreviewState
from paperdraft.editor.status import Phase
from paperdraft.paper.layout import A4, InvalidGeometry, MeasurementFailure
from paperdraft.paper.model import PAPER_SECTIONS, Citation, Suggestion, WritingImprovement
from paperdraft.paper.renderer import PaperRenderer


class RecordingSaver:
    def __init__(self):
        self.calls = []

    def __call__(self, filename, data):
        self.calls.append((filename, data))
        return filename


def generated_paper():
    paper = {title: f"{title} text." for title in PAPER_SECTIONS}
    paper["References"] = "[1] Someone."
    return paper


@pytest.fixture
def generator():
    mock = MagicMock()
    mock.generate_paper = AsyncMock(return_value=generated_paper())
    mock.fetch_citations = AsyncMock(return_value=[
        Citation(id="c1", title="Prior Work", authors=["Lee"], year="2020"),
    ])
    mock.improve_writing = AsyncMock(return_value=WritingImprovement(improved="Generated text."))
    mock.analyze_paragraph = AsyncMock(return_value=[Suggestion(type="clarity", content="Split this")])
    return mock


@pytest.fixture
def saver():
    return RecordingSaver()


@pytest.fixture
def session(temp_dir, clock, generator, saver):
    auth = AuthProvider(secret="test-secret")
    auth.sign_in("user-1", "ada@example.org")
    return EditorSession(
        store=PaperStore(str(temp_dir / "papers.db"), clock=clock),
        generator=generator,
        renderer=PaperRenderer(saver=saver),
        auth=auth,
    )


async def open_sample(session, paper):
    await session.store.put("user-1", paper)
    return await session.open_paper(paper.id)


class TestPapers:
    """Tests for creating, opening and deleting papers."""

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, session):
        session.auth.sign_out()

        with pytest.raises(NotAuthenticated):
            await session.list_papers()

    @pytest.mark.asyncio
    async def test_create_paper_uses_default_sections(self, session):
        paper = await session.create_paper("New Paper")

        assert paper.owner_id == "user-1"
        assert [s.title for s in session.sections][:2] == ["Abstract", "Introduction"]
        assert session.preview_state.document is not None

    @pytest.mark.asyncio
    async def test_open_missing_paper(self, session):
        with pytest.raises(PaperNotFound, match="Paper not found"):
            await session.open_paper("nope")

    @pytest.mark.asyncio
    async def test_open_sorts_sections(self, session, sample_paper):
        sample_paper.sections.reverse()

        await open_sample(session, sample_paper)

        assert [s.order for s in session.sections] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_delete_paper(self, session, sample_paper):
        await open_sample(session, sample_paper)

        await session.delete_paper()

        assert session.paper is None
        assert await session.list_papers() == []
        with pytest.raises(NoPaperOpen):
            await session.update_title("x")


class TestCreateFromTopic:
    """Tests for generating a whole paper."""

    @pytest.mark.asyncio
    async def test_builds_sections_in_order(self, session):
        paper = await session.create_from_topic("Quantum Error Correction")

        assert paper.title == "Quantum Error Correction"
        assert paper.abstract == "Abstract text."
        assert [s.title for s in session.sections] == PAPER_SECTIONS[1:]
        assert [s.order for s in session.sections] == list(range(1, len(PAPER_SECTIONS)))
        assert paper.citations[0].title == "Prior Work"
        assert session.status.status.phase is Phase.IDLE

        stored = await session.store.get("user-1", paper.id)
        assert stored.title == "Quantum Error Correction"

    @pytest.mark.asyncio
    async def test_missing_section_fails(self, session, generator):
        incomplete = generated_paper()
        del incomplete["Methodology"]
        generator.generate_paper.return_value = incomplete

        with pytest.raises(GenerationError, match="Methodology"):
            await session.create_from_topic("topic")

        assert session.status.status.phase is Phase.ERROR
        assert await session.list_papers() == []

    @pytest.mark.asyncio
    async def test_service_error_recorded(self, session, generator):
        generator.generate_paper.side_effect = GenerationError("Quota exceeded", 429)

        with pytest.raises(GenerationError):
            await session.create_from_topic("topic")

        assert session.status.status.error == "Quota exceeded"


class TestEdits:
    """Tests for optimistic edits."""

    @pytest.mark.asyncio
    async def test_update_title_persists(self, session, sample_paper):
        await open_sample(session, sample_paper)

        await session.update_title("Sharper Title")

        stored = await session.store.get("user-1", "paper-1")
        assert stored.title == "Sharper Title"
        assert session.preview_state.document.pages[0].blocks[0].text == "Sharper Title"

    @pytest.mark.asyncio
    async def test_overlapping_edits_keep_both_fields(self, session, sample_paper):
        await open_sample(session, sample_paper)

        await asyncio.gather(
            session.update_title("new title"),
            session.update_abstract("new abstract"),
        )

        assert (session.paper.title, session.paper.abstract) == ("new title", "new abstract")
        stored = await session.store.get("user-1", "paper-1")
        assert (stored.title, stored.abstract) == ("new title", "new abstract")

    @pytest.mark.asyncio
    async def test_failed_save_reverts(self, session, sample_paper):
        await open_sample(session, sample_paper)
        session.store.update = AsyncMock(side_effect=StoreError("disk full"))

        with pytest.raises(StoreError):
            await session.update_title("Lost")

        assert session.paper.title == sample_paper.title
        assert session.preview_state.document.pages[0].blocks[0].text == sample_paper.title

    @pytest.mark.asyncio
    async def test_failed_section_save_reverts_sections(self, session, sample_paper):
        await open_sample(session, sample_paper)
        session.store.update = AsyncMock(side_effect=StoreError("disk full"))

        with pytest.raises(StoreError):
            await session.add_section("Discussion")

        assert [s.id for s in session.sections] == ["s-intro", "s-method", "s-results"]

    @pytest.mark.asyncio
    async def test_add_and_delete_section(self, session, sample_paper):
        await open_sample(session, sample_paper)

        section = await session.add_section("Appendix", "Extra.", order=1)
        assert [s.title for s in session.sections] == ["Introduction", "Method", "Appendix", "Results"]

        await session.delete_section(section.id)
        stored = await session.store.get("user-1", "paper-1")
        assert [s.id for s in stored.sections] == ["s-intro", "s-method", "s-results"]

    @pytest.mark.asyncio
    async def test_unknown_section(self, session, sample_paper):
        await open_sample(session, sample_paper)

        with pytest.raises(StoreError):
            await session.update_section_content("missing", "text")

    @pytest.mark.asyncio
    async def test_citations(self, session, sample_paper):
        await open_sample(session, sample_paper)

        added = await session.add_citation(Citation(id="", title="Paper", year="2021"))
        assert session.paper.citations == [added]

        await session.delete_citation(added.id)
        assert session.paper.citations == []
        stored = await session.store.get("user-1", "paper-1")
        assert stored.citations == []


class TestAIEditing:
    """Tests for regeneration and analysis."""

    @pytest.mark.asyncio
    async def test_regenerate_appends(self, session, sample_paper, generator):
        await open_sample(session, sample_paper)

        section = await session.regenerate_section("s-intro", "  expand on cost  ")

        assert section.content == "Long inputs are expensive.\n\nGenerated text."
        generator.improve_writing.assert_awaited_once_with(
            "expand on cost",
            "academic",
            {
                "sectionTitle": "Introduction",
                "paperTitle": sample_paper.title,
                "abstract": sample_paper.abstract,
            },
        )
        assert session.status.status.phase is Phase.IDLE

    @pytest.mark.asyncio
    async def test_regenerate_empty_section(self, session, sample_paper):
        await open_sample(session, sample_paper)

        section = await session.regenerate_section("s-results", "write results")

        assert section.content == "Generated text."

    @pytest.mark.asyncio
    async def test_regenerate_rejects_blank_prompt(self, session, sample_paper, generator):
        await open_sample(session, sample_paper)

        with pytest.raises(ValueError):
            await session.regenerate_section("s-intro", "   ")

        generator.improve_writing.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_regenerate_failure_keeps_content(self, session, sample_paper, generator):
        await open_sample(session, sample_paper)
        generator.improve_writing.side_effect = GenerationError("Service down", 503)

        with pytest.raises(GenerationError):
            await session.regenerate_section("s-intro", "more")

        assert session.get_section("s-intro").content == "Long inputs are expensive."
        assert session.status.status.error == "Service down"

    @pytest.mark.asyncio
    async def test_regenerate_abstract(self, session, sample_paper):
        await open_sample(session, sample_paper)

        paper = await session.regenerate_abstract("summarize")

        assert paper.abstract == "Generated text."

    @pytest.mark.asyncio
    async def test_analyze_records_suggestions(self, session):
        suggestions = await session.analyze("Some paragraph.")

        assert session.status.status.suggestions == suggestions


class TestPreview:
    """Tests for preview refresh and download."""

    @pytest.mark.asyncio
    async def test_render_failure_keeps_last_document(self, session, sample_paper):
        await open_sample(session, sample_paper)
        good = session.preview_state.document
        session.renderer.geometry = replace(A4, margin=0)

        await session.update_title("Changed")

        assert session.preview_state.document is good
        assert session.preview_state.error is not None

    @pytest.mark.asyncio
    async def test_preview_pdf_uses_last_good_document(self, session, sample_paper):
        """A failed re-render still serves the kept document as PDF."""
        await open_sample(session, sample_paper)
        session.renderer.preview = MagicMock(side_effect=MeasurementFailure("boom"))

        session.refresh_preview()
        data = session.preview_pdf()

        assert data.startswith(b"%PDF")
        assert session.preview_state.error == "boom"
        session.renderer.preview.assert_called_once()

    @pytest.mark.asyncio
    async def test_format_paper_sends_sections(self, session, sample_paper, generator):
        generator.format_paper = AsyncMock(return_value="Formatted.")
        await open_sample(session, sample_paper)

        assert await session.format_paper("MLA") == "Formatted."

        contents, style = generator.format_paper.await_args.args
        assert style == "MLA"
        assert list(contents) == ["Title", "Abstract", "Introduction", "Method", "Results"]

    @pytest.mark.asyncio
    async def test_preview_never_saves(self, session, sample_paper, saver):
        await open_sample(session, sample_paper)

        await session.update_abstract("Edited abstract.")
        session.preview_pdf()

        assert saver.calls == []

    @pytest.mark.asyncio
    async def test_download_saves_once(self, session, sample_paper, saver):
        await open_sample(session, sample_paper)

        session.download()

        assert [name for name, _ in saver.calls] == ["efficient-attention-for-long-documents.pdf"]

    @pytest.mark.asyncio
    async def test_download_failure_propagates(self, session, sample_paper, saver):
        await open_sample(session, sample_paper)
        session.renderer.geometry = replace(A4, margin=0)

        with pytest.raises(InvalidGeometry):
            session.download()

        assert saver.calls == []


class TestPreviewState:
    """Tests for dropping stale render results."""

    def test_newer_result_wins(self):
        state = PreviewState()
        first = state.begin()
        second = state.begin()

        assert state.complete(second, "doc-2") is True
        assert state.complete(first, "doc-1") is False
        assert state.document == "doc-2"

    def test_failure_keeps_document(self):
        state = PreviewState()
        state.complete(state.begin(), "doc-1")

        state.fail(state.begin(), "bad geometry")

        assert state.document == "doc-1"
        assert state.error == "bad geometry"

    def test_stale_failure_ignored(self):
        state = PreviewState()
        old = state.begin()
        state.complete(state.begin(), "doc-2")

        assert state.fail(old, "late error") is False
        assert state.error is None
