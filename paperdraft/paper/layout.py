"""Paginated text layout for paper previews and PDF export.

``render`` turns a paper, its already-ordered sections and a page geometry
into a ``Document``: a list of fixed-size pages, each holding positioned text
blocks. Pagination is block-based. Before a block is placed its height is
measured against the space left on the page; if it does not fit, a new page
is started. A block taller than a whole page is continued on the following
pages, split between lines.

Page lengths are millimetres, measured from the top-left corner of the page.
Font sizes are points.
"""

import math
from dataclasses import dataclass
from typing import Optional

from reportlab.pdfbase.pdfmetrics import stringWidth

from paperdraft.paper.model import Paper, Section


PT_TO_MM = 25.4 / 72

REGULAR_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"

ABSTRACT_HEADING = "Abstract"

# Slack for float comparisons against the bottom margin.
EPSILON = 1e-6


class LayoutError(Exception):
    """Base class for render failures."""


class InvalidGeometry(LayoutError, ValueError):
    """A layout dimension is missing, non-positive or leaves no room for text."""


class MeasurementFailure(LayoutError):
    """The text measurement primitive could not size a string."""


@dataclass(frozen=True)
class PageGeometry:
    """Physical page layout parameters."""
    page_width: float
    page_height: float
    margin: float
    title_font_size: float
    section_heading_font_size: float
    body_font_size: float
    line_height_factor: float = 1.5
    title_gap: float = 12.0
    block_gap: float = 5.0

    REQUIRED_FIELDS = (
        "page_width",
        "page_height",
        "margin",
        "title_font_size",
        "section_heading_font_size",
        "body_font_size",
        "line_height_factor",
    )

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def max_y(self) -> float:
        return self.page_height - self.margin

    @property
    def usable_height(self) -> float:
        return self.page_height - 2 * self.margin

    def line_height(self, font_size: float) -> float:
        return font_size * PT_TO_MM * self.line_height_factor

    def validate(self) -> None:
        """Raise ``InvalidGeometry`` unless every dimension is usable."""
        for name in self.REQUIRED_FIELDS:
            value = getattr(self, name)
            if not _is_number(value) or not value > 0 or math.isinf(value):
                raise InvalidGeometry(f"{name} must be a positive number, got {value!r}")

        for name in ("title_gap", "block_gap"):
            value = getattr(self, name)
            if not _is_number(value) or not value >= 0 or math.isinf(value):
                raise InvalidGeometry(f"{name} must be a non-negative number, got {value!r}")

        if self.content_width <= 0:
            raise InvalidGeometry(
                f"margin {self.margin} leaves no content width on a {self.page_width} wide page"
            )
        if self.usable_height <= 0:
            raise InvalidGeometry(
                f"margin {self.margin} leaves no content height on a {self.page_height} high page"
            )

        for name in ("title_font_size", "section_heading_font_size", "body_font_size"):
            if self.line_height(getattr(self, name)) > self.usable_height + EPSILON:
                raise InvalidGeometry(f"a single line at {name} is taller than the usable page")

    def to_dict(self) -> dict:
        return {
            "page_width": self.page_width,
            "page_height": self.page_height,
            "margin": self.margin,
            "title_font_size": self.title_font_size,
            "section_heading_font_size": self.section_heading_font_size,
            "body_font_size": self.body_font_size,
            "line_height_factor": self.line_height_factor,
            "title_gap": self.title_gap,
            "block_gap": self.block_gap,
        }


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


A4 = PageGeometry(
    page_width=210.0,
    page_height=297.0,
    margin=25.0,
    title_font_size=24.0,
    section_heading_font_size=14.0,
    body_font_size=11.0,
)

LETTER = PageGeometry(
    page_width=215.9,
    page_height=279.4,
    margin=25.4,
    title_font_size=24.0,
    section_heading_font_size=14.0,
    body_font_size=11.0,
)


class TextMeasurer:
    """Measures rendered string widths (in mm) using reportlab font metrics."""

    def width(self, text: str, font_name: str, font_size: float) -> float:
        try:
            points = stringWidth(text, font_name, font_size)
        except Exception as e:
            raise MeasurementFailure(
                f"Cannot measure {text[:30]!r} in {font_name} {font_size}pt: {e}"
            ) from e

        if not _is_number(points) or math.isnan(points) or math.isinf(points) or points < 0:
            raise MeasurementFailure(f"Invalid width {points!r} for {text[:30]!r} in {font_name}")

        return points * PT_TO_MM


@dataclass(frozen=True)
class PlacedLine:
    """One line of text; ``x``/``y`` are its left and top edge on the page."""
    text: str
    x: float
    y: float
    width: float

    def to_dict(self) -> dict:
        return {"text": self.text, "x": self.x, "y": self.y, "width": self.width}


@dataclass(frozen=True)
class TextBlock:
    """A positioned unit of text: title, heading or body."""
    kind: str
    lines: tuple[PlacedLine, ...]
    x: float
    y: float
    width: float
    height: float
    font_name: str
    font_size: float
    line_height: float
    bold: bool
    align: str = "left"
    continued: bool = False

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "lines": [line.to_dict() for line in self.lines],
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "font_name": self.font_name,
            "font_size": self.font_size,
            "line_height": self.line_height,
            "bold": self.bold,
            "align": self.align,
            "continued": self.continued,
        }


@dataclass(frozen=True)
class Page:
    number: int
    blocks: tuple[TextBlock, ...]

    def to_dict(self) -> dict:
        return {"number": self.number, "blocks": [b.to_dict() for b in self.blocks]}


@dataclass(frozen=True)
class Document:
    """Ordered pages of placed text blocks."""
    geometry: PageGeometry
    pages: tuple[Page, ...]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def blocks(self) -> list[TextBlock]:
        return [block for page in self.pages for block in page.blocks]

    def to_dict(self) -> dict:
        return {
            "geometry": self.geometry.to_dict(),
            "page_count": self.page_count,
            "pages": [p.to_dict() for p in self.pages],
        }


@dataclass
class LayoutCursor:
    page: int = 1
    offset: float = 0.0


def wrap_text(
    text: str,
    max_width: float,
    font_name: str,
    font_size: float,
    measurer: TextMeasurer,
) -> list[str]:
    """Greedy word wrap to ``max_width`` mm.

    Explicit newlines start new lines; trailing newlines are dropped. Words
    wider than the line are broken between characters. Empty text gives no
    lines.
    """
    text = text.rstrip("\n")
    if not text:
        return []

    def width(s: str) -> float:
        return measurer.width(s, font_name, font_size)

    lines = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue

        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if width(candidate) <= max_width + EPSILON:
                current = candidate
                continue

            if current:
                lines.append(current)
                current = ""

            if width(word) <= max_width + EPSILON:
                current = word
                continue

            # Break an over-long word into chunks that fit
            chunk = ""
            for char in word:
                if chunk and width(chunk + char) > max_width + EPSILON:
                    lines.append(chunk)
                    chunk = ""
                if not chunk and width(char) > max_width + EPSILON:
                    raise InvalidGeometry(
                        f"content width {max_width:.2f}mm is narrower than a single character"
                    )
                chunk += char
            current = chunk

        if current:
            lines.append(current)

    return lines


class _PageLayout:
    """Places blocks top to bottom, starting new pages as needed."""

    def __init__(self, geometry: PageGeometry, measurer: TextMeasurer):
        self.geometry = geometry
        self.measurer = measurer
        self.cursor = LayoutCursor(page=1, offset=geometry.margin)
        self.pages: list[list[TextBlock]] = [[]]

    def new_page(self) -> None:
        self.pages.append([])
        self.cursor.page += 1
        self.cursor.offset = self.geometry.margin

    def add_title(self, title: str) -> None:
        g = self.geometry
        self._add("title", title, BOLD_FONT, g.title_font_size, "center", g.title_gap)

    def add_heading(self, heading: str) -> None:
        g = self.geometry
        self._add("heading", heading, BOLD_FONT, g.section_heading_font_size, "left", g.block_gap)

    def add_body(self, text: str) -> None:
        g = self.geometry
        self._add("body", text, REGULAR_FONT, g.body_font_size, "left", g.block_gap)

    def _add(self, kind: str, text: str, font_name: str, font_size: float, align: str, gap: float) -> None:
        g = self.geometry
        lines = wrap_text(text, g.content_width, font_name, font_size, self.measurer)
        line_height = g.line_height(font_size)
        continued = False

        while True:
            if self.cursor.offset + len(lines) * line_height > g.max_y + EPSILON:
                if self.cursor.offset > g.margin + EPSILON:
                    self.new_page()

            room = int((g.max_y - self.cursor.offset + EPSILON) / line_height)
            if len(lines) <= room:
                self._place(kind, lines, font_name, font_size, line_height, align, continued)
                self.cursor.offset += len(lines) * line_height + gap
                return

            # Taller than a whole page: fill this page, continue on the next
            self._place(kind, lines[:room], font_name, font_size, line_height, align, continued)
            lines = lines[room:]
            continued = True
            self.new_page()

    def _place(
        self,
        kind: str,
        lines: list[str],
        font_name: str,
        font_size: float,
        line_height: float,
        align: str,
        continued: bool,
    ) -> None:
        g = self.geometry
        top = self.cursor.offset
        placed = []
        for i, text in enumerate(lines):
            width = self.measurer.width(text, font_name, font_size)
            if align == "center":
                x = (g.page_width - width) / 2
            else:
                x = g.margin
            placed.append(PlacedLine(text=text, x=x, y=top + i * line_height, width=width))

        if placed:
            x = min(line.x for line in placed)
            width = max(line.x + line.width for line in placed) - x
        else:
            x = (g.page_width / 2) if align == "center" else g.margin
            width = 0.0

        self.pages[-1].append(TextBlock(
            kind=kind,
            lines=tuple(placed),
            x=x,
            y=top,
            width=width,
            height=len(lines) * line_height,
            font_name=font_name,
            font_size=font_size,
            line_height=line_height,
            bold=font_name == BOLD_FONT,
            align=align,
            continued=continued,
        ))

    def finish(self) -> Document:
        return Document(
            geometry=self.geometry,
            pages=tuple(
                Page(number=i + 1, blocks=tuple(blocks))
                for i, blocks in enumerate(self.pages)
            ),
        )


def render(
    paper: Paper,
    sections: list[Section],
    geometry: PageGeometry = A4,
    measurer: Optional[TextMeasurer] = None,
) -> Document:
    """Lay out a paper as fixed-size pages.

    ``sections`` must already be sorted (see ``sort_sections``); they are
    laid out exactly in the order given. Sections with empty content get a
    heading only. Raises ``InvalidGeometry`` or ``MeasurementFailure``;
    nothing is returned on failure.
    """
    geometry.validate()
    layout = _PageLayout(geometry, measurer or TextMeasurer())

    layout.add_title(paper.title)
    layout.add_heading(ABSTRACT_HEADING)
    layout.add_body(paper.abstract)

    for section in sections:
        layout.add_heading(section.title)
        if section.content:
            layout.add_body(section.content)

    return layout.finish()
