"""Tests for PDF output, preview and download."""

import base64
import re
from dataclasses import replace

import pytest

from paperdraft.paper.layout import A4, Document, InvalidGeometry, render
from paperdraft.paper.model import Paper
from paperdraft.paper.renderer import (
    FileSaver,
    PaperRenderer,
    pdf_filename,
    to_data_uri,
    write_pdf,
)


class RecordingSaver:
    """Save callback that remembers what it was asked to write."""

    def __init__(self):
        self.calls = []

    def __call__(self, filename, data):
        self.calls.append((filename, data))
        return filename


class TestPdfFilename:
    """Tests for download filenames."""

    def test_lowercase_and_hyphens(self):
        assert pdf_filename("Deep Learning for X") == "deep-learning-for-x.pdf"

    def test_whitespace_runs_collapse(self):
        assert pdf_filename("Deep   Learning\tfor\nX") == "deep-learning-for-x.pdf"

    def test_empty_title(self):
        assert pdf_filename("") == "untitled.pdf"
        assert pdf_filename("   ") == "untitled.pdf"

    def test_path_separators_replaced(self):
        assert pdf_filename("A/B Testing") == "a-b-testing.pdf"


class TestWritePdf:
    """Tests for PDF serialization."""

    def test_produces_pdf(self, sample_paper):
        data = write_pdf(render(sample_paper, sample_paper.sections, A4))

        assert data.startswith(b"%PDF")
        assert data.rstrip().endswith(b"%%EOF")

    def test_page_count_matches_layout(self, long_paper):
        document = render(long_paper, long_paper.sections, A4)

        data = write_pdf(document)

        match = re.search(rb"/Count (\d+)", data)
        assert match is not None
        assert int(match.group(1)) == document.page_count

    def test_byte_identical_for_same_input(self, long_paper):
        first = write_pdf(render(long_paper, long_paper.sections, A4), long_paper.title)
        second = write_pdf(render(long_paper, long_paper.sections, A4), long_paper.title)

        assert first == second

    def test_data_uri(self, sample_paper):
        data = write_pdf(render(sample_paper, sample_paper.sections, A4))

        uri = to_data_uri(data)

        assert uri.startswith("data:application/pdf;base64,")
        assert base64.b64decode(uri.split(",", 1)[1]) == data


class TestPreviewVersusDownload:
    """Tests for side effects of preview and download."""

    def test_preview_returns_document_without_saving(self, sample_paper):
        saver = RecordingSaver()
        renderer = PaperRenderer(saver=saver)

        result = renderer.generate(sample_paper, sample_paper.sections, for_download=False)

        assert isinstance(result, Document)
        assert saver.calls == []

    def test_download_saves_once_and_returns_nothing(self, sample_paper):
        saver = RecordingSaver()
        renderer = PaperRenderer(saver=saver)

        result = renderer.generate(sample_paper, sample_paper.sections, for_download=True)

        assert result is None
        assert len(saver.calls) == 1
        filename, data = saver.calls[0]
        assert filename == "efficient-attention-for-long-documents.pdf"
        assert data.startswith(b"%PDF")

    def test_repeated_previews_never_save(self, sample_paper):
        saver = RecordingSaver()
        renderer = PaperRenderer(saver=saver)

        for _ in range(5):
            renderer.preview(sample_paper, sample_paper.sections)
            write_pdf(renderer.preview(sample_paper, sample_paper.sections))

        assert saver.calls == []

    def test_invalid_geometry_blocks_download(self, sample_paper):
        saver = RecordingSaver()
        renderer = PaperRenderer(geometry=replace(A4, margin=0), saver=saver)

        with pytest.raises(InvalidGeometry):
            renderer.generate(sample_paper, sample_paper.sections, for_download=True)

        assert saver.calls == []

    def test_file_saver_writes_file(self, sample_paper, temp_dir):
        renderer = PaperRenderer(saver=FileSaver(temp_dir / "exports"))

        path = renderer.download(sample_paper, sample_paper.sections)

        assert path == temp_dir / "exports" / "efficient-attention-for-long-documents.pdf"
        assert path.read_bytes().startswith(b"%PDF")

    def test_empty_paper_downloads(self, temp_dir):
        renderer = PaperRenderer(saver=FileSaver(temp_dir))

        path = renderer.download(Paper(id="p", title="", abstract=""), [])

        assert path.name == "untitled.pdf"
