"""Paper model, paginated layout and PDF rendering."""

from paperdraft.paper.model import (
    Paper,
    Section,
    Citation,
    Suggestion,
    OutlineSection,
    WritingImprovement,
    PAPER_SECTIONS,
    sort_sections,
    default_sections,
    create_empty_paper,
)

from paperdraft.paper.layout import (
    A4,
    LETTER,
    PageGeometry,
    Document,
    Page,
    TextBlock,
    TextMeasurer,
    LayoutError,
    InvalidGeometry,
    MeasurementFailure,
    render,
)

from paperdraft.paper.renderer import (
    PaperRenderer,
    FileSaver,
    pdf_filename,
    write_pdf,
    to_data_uri,
)

__all__ = [
    "Paper",
    "Section",
    "Citation",
    "Suggestion",
    "OutlineSection",
    "WritingImprovement",
    "PAPER_SECTIONS",
    "sort_sections",
    "default_sections",
    "create_empty_paper",
    "A4",
    "LETTER",
    "PageGeometry",
    "Document",
    "Page",
    "TextBlock",
    "TextMeasurer",
    "LayoutError",
    "InvalidGeometry",
    "MeasurementFailure",
    "render",
    "PaperRenderer",
    "FileSaver",
    "pdf_filename",
    "write_pdf",
    "to_data_uri",
]
