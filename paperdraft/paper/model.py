"""Paper data model - papers, ordered sections, citations and AI suggestions."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


CITATION_TYPES = ("article", "book", "conference", "website")

WRITING_ASPECTS = ("clarity", "conciseness", "academic")

PAPER_FORMATS = ("APA", "MLA", "Chicago", "IEEE")

# Canonical order of a generated paper; "References" is kept in the
# generated payload but is rendered from citations instead.
PAPER_SECTIONS = [
    "Abstract",
    "Introduction",
    "Literature Review",
    "Methodology",
    "Results",
    "Discussion",
    "Conclusion",
]

DEFAULT_SECTIONS = [
    ("abstract", "Abstract"),
    ("intro", "Introduction"),
    ("lit-review", "Literature Review"),
    ("methodology", "Methodology"),
    ("results", "Results"),
    ("discussion", "Discussion"),
    ("conclusion", "Conclusion"),
]


def new_id() -> str:
    return str(uuid.uuid4())


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(value)
    return datetime.now(timezone.utc)


@dataclass
class Citation:
    """Bibliographic reference attached to a paper."""
    id: str
    title: str
    authors: list[str] = field(default_factory=list)
    year: str = ""
    type: str = "article"
    text: str = ""
    journal: str = ""
    doi: str = ""
    url: str = ""
    citation_text: str = ""

    def format_text(self) -> str:
        """Short reference line: ``Authors (Year). Title. Journal.``"""
        text = f"{', '.join(self.authors)} ({self.year}). {self.title}."
        if self.journal:
            text += f" {self.journal}."
        return text

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "authors": self.authors,
            "year": self.year,
            "type": self.type,
            "text": self.text,
            "journal": self.journal,
            "doi": self.doi,
            "url": self.url,
            "citation_text": self.citation_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Citation":
        return cls(
            id=data.get("id", "") or new_id(),
            title=data.get("title", ""),
            authors=list(data.get("authors") or []),
            year=str(data.get("year", "") or ""),
            type=data.get("type", "article"),
            text=data.get("text", ""),
            journal=data.get("journal") or "",
            doi=data.get("doi") or "",
            url=data.get("url") or "",
            citation_text=data.get("citation_text") or data.get("citationText") or "",
        )


@dataclass
class Section:
    """Titled, orderable block of paper content."""
    id: str
    title: str
    content: str = ""
    order: int = 0

    def word_count(self) -> int:
        return len(self.content.split())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Section":
        return cls(
            id=data.get("id", "") or new_id(),
            title=data.get("title", ""),
            content=data.get("content", "") or "",
            order=int(data.get("order", 0)),
        )


@dataclass
class Paper:
    """
    A research paper draft.

    Section ordering is defined by ``Section.order``, never by list position.
    Use ``sort_sections`` before handing sections to the layout engine.
    """
    id: str
    title: str
    abstract: str
    owner_id: str = ""
    sections: list[Section] = field(default_factory=list)
    citations: list[Citation] = field(default_factory=list)
    created_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "abstract": self.abstract,
            "owner_id": self.owner_id,
            "sections": [s.to_dict() for s in self.sections],
            "citations": [c.to_dict() for c in self.citations],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Paper":
        return cls(
            id=data.get("id", "") or new_id(),
            title=data.get("title", ""),
            abstract=data.get("abstract", ""),
            owner_id=data.get("owner_id", ""),
            sections=[Section.from_dict(s) for s in data.get("sections", [])],
            citations=[Citation.from_dict(c) for c in data.get("citations", [])],
            created_at=_parse_datetime(data.get("created_at")),
            last_modified=_parse_datetime(data.get("last_modified")),
        )

    def save(self, path: Path) -> None:
        """Save paper to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, ensure_ascii=False))

    @classmethod
    def load(cls, path: Path) -> "Paper":
        return cls.from_dict(json.loads(path.read_text()))

    def get_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def total_word_count(self) -> int:
        count = len(self.abstract.split())
        for section in self.sections:
            count += section.word_count()
        return count


@dataclass
class Suggestion:
    """Writing suggestion returned by paragraph analysis."""
    type: str
    content: str
    severity: str = "medium"
    section: str = ""
    position: int = -1

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "content": self.content,
            "severity": self.severity,
            "section": self.section,
            "position": self.position,
        }


@dataclass
class OutlineSection:
    title: str
    description: str = ""

    def to_dict(self) -> dict:
        return {"title": self.title, "description": self.description}


@dataclass
class WritingImprovement:
    """Rewritten passage plus the list of changes the service reported."""
    improved: str
    changes: list[str] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "improved": self.improved,
            "changes": self.changes,
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


def sort_sections(sections: list[Section]) -> list[Section]:
    """Return sections ascending by ``order``; ties keep their original relative position."""
    return sorted(sections, key=lambda s: s.order)


def default_sections() -> list[Section]:
    return [
        Section(id=section_id, title=title, content="", order=i)
        for i, (section_id, title) in enumerate(DEFAULT_SECTIONS)
    ]


def create_empty_paper(title: str, abstract: str = "", owner_id: str = "") -> Paper:
    """Create a new paper with no sections or citations."""
    return Paper(
        id=new_id(),
        title=title,
        abstract=abstract,
        owner_id=owner_id,
    )
