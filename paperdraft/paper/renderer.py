"""PDF output for laid-out papers using the reportlab canvas."""

import base64
import io
import logging
import re
from pathlib import Path
from typing import Callable, Optional

from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from paperdraft.paper.layout import A4, Document, PageGeometry, TextMeasurer, render
from paperdraft.paper.model import Paper, Section


logger = logging.getLogger("paperdraft.renderer")

# Baseline position within a line box, as a fraction of the line height.
BASELINE_RATIO = 0.75

SaveCallback = Callable[[str, bytes], Path]


def pdf_filename(title: str) -> str:
    """Download filename for a paper: lowercased title, whitespace runs as hyphens."""
    slug = re.sub(r"\s+", "-", title.strip().lower())
    slug = slug.replace("/", "-").replace("\\", "-")
    return f"{slug or 'untitled'}.pdf"


def write_pdf(document: Document, title: str = "") -> bytes:
    """Serialize a document to PDF bytes.

    Output is deterministic: the same document always gives the same bytes.
    """
    g = document.geometry
    buffer = io.BytesIO()
    pdf = canvas.Canvas(
        buffer,
        pagesize=(g.page_width * mm, g.page_height * mm),
        invariant=1,
    )
    if title:
        pdf.setTitle(title)

    for page in document.pages:
        for block in page.blocks:
            pdf.setFont(block.font_name, block.font_size)
            for line in block.lines:
                baseline = line.y + block.line_height * BASELINE_RATIO
                pdf.drawString(line.x * mm, (g.page_height - baseline) * mm, line.text)
        pdf.showPage()

    pdf.save()
    return buffer.getvalue()


def to_data_uri(pdf_bytes: bytes) -> str:
    """Encode PDF bytes as a data URI a viewer can load directly."""
    return "data:application/pdf;base64," + base64.b64encode(pdf_bytes).decode("ascii")


class FileSaver:
    """Writes exported PDFs into a directory."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def __call__(self, filename: str, data: bytes) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        path.write_bytes(data)
        logger.info(f"Saved {len(data)} bytes to {path}")
        return path


class PaperRenderer:
    """Renders papers for on-screen preview or file download."""

    def __init__(
        self,
        geometry: PageGeometry = A4,
        measurer: Optional[TextMeasurer] = None,
        saver: Optional[SaveCallback] = None,
    ):
        self.geometry = geometry
        self.measurer = measurer or TextMeasurer()
        self.saver = saver or FileSaver(Path.cwd())

    def preview(self, paper: Paper, sections: list[Section]) -> Document:
        """Lay out the paper without any side effects."""
        return render(paper, sections, self.geometry, self.measurer)

    def generate(
        self,
        paper: Paper,
        sections: list[Section],
        for_download: bool = False,
    ) -> Optional[Document]:
        """Return the laid-out document, or save it as a PDF when ``for_download``.

        A download triggers exactly one save and returns ``None``.
        """
        document = self.preview(paper, sections)
        if not for_download:
            return document

        data = write_pdf(document, paper.title)
        self.saver(pdf_filename(paper.title), data)
        return None

    def download(self, paper: Paper, sections: list[Section]) -> Path:
        """Save the paper as a PDF and return where it was written."""
        document = self.preview(paper, sections)
        data = write_pdf(document, paper.title)
        return self.saver(pdf_filename(paper.title), data)
