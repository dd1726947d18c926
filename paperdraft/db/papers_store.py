"""SQLite-backed document store for paper drafts, keyed by owner and paper id."""

import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import aiosqlite

from paperdraft.paper.model import (
    Citation,
    Paper,
    Section,
    create_empty_paper,
    new_id,
)


UPDATABLE_FIELDS = ("title", "abstract", "sections", "citations")


class StoreError(RuntimeError):
    """A document store operation could not be completed."""


class PaperNotFound(StoreError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_sections(value: list) -> list[Section]:
    return [s if isinstance(s, Section) else Section.from_dict(s) for s in value]


def _as_citations(value: list) -> list[Citation]:
    return [c if isinstance(c, Citation) else Citation.from_dict(c) for c in value]


class PaperStore:
    """Persists papers per owner. Timestamps are always assigned by the store."""

    def __init__(
        self,
        db_path: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if db_path is None:
            cache_dir = Path.home() / ".cache" / "paperdraft"
            cache_dir.mkdir(parents=True, exist_ok=True)
            db_path = str(cache_dir / "papers.db")
        self.db_path = db_path
        self.clock = clock
        self._initialized = False

    async def _ensure_initialized(self):
        # Check if db file exists - if deleted, need to reinitialize
        if self._initialized and Path(self.db_path).exists():
            return
        self._initialized = False

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS papers (
                    owner_id TEXT NOT NULL,
                    paper_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    abstract TEXT NOT NULL,
                    sections TEXT NOT NULL,
                    citations TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    last_modified TEXT NOT NULL,
                    PRIMARY KEY (owner_id, paper_id)
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_papers_modified ON papers(owner_id, last_modified)
            """)

            await db.commit()

        self._initialized = True

    async def get(self, owner_id: str, paper_id: str) -> Optional[Paper]:
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM papers WHERE owner_id = ? AND paper_id = ?",
                (owner_id, paper_id),
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    return self._row_to_paper(row)
        return None

    async def put(self, owner_id: str, paper: Paper) -> Paper:
        """Create or overwrite a paper. Keeps the original creation time on overwrite."""
        await self._ensure_initialized()

        now = self.clock()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT created_at FROM papers WHERE owner_id = ? AND paper_id = ?",
                (owner_id, paper.id),
            ) as cursor:
                row = await cursor.fetchone()
            created_at = datetime.fromisoformat(row[0]) if row else now

            stored = replace(
                paper,
                owner_id=owner_id,
                created_at=created_at,
                last_modified=now,
            )
            await db.execute("""
                INSERT OR REPLACE INTO papers
                (owner_id, paper_id, title, abstract, sections, citations, created_at, last_modified)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                owner_id,
                stored.id,
                stored.title,
                stored.abstract,
                json.dumps([s.to_dict() for s in stored.sections]),
                json.dumps([c.to_dict() for c in stored.citations]),
                created_at.isoformat(),
                now.isoformat(),
            ))
            await db.commit()

        return stored

    async def update(self, owner_id: str, paper_id: str, fields: dict[str, Any]) -> Paper:
        """Apply a partial update: only the given columns are written. Last write wins per field."""
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise StoreError(f"Cannot update fields: {sorted(unknown)}")

        await self._ensure_initialized()

        columns = {}
        for name, value in fields.items():
            if name == "sections":
                columns[name] = json.dumps([s.to_dict() for s in _as_sections(value)])
            elif name == "citations":
                columns[name] = json.dumps([c.to_dict() for c in _as_citations(value)])
            else:
                columns[name] = value

        now = self.clock()
        # Column names come from UPDATABLE_FIELDS only
        assignments = "".join(f"{name} = ?, " for name in columns)
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                f"UPDATE papers SET {assignments}last_modified = ? WHERE owner_id = ? AND paper_id = ?",
                (*columns.values(), now.isoformat(), owner_id, paper_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise PaperNotFound(f"Paper not found: {paper_id}")

        return await self._require(owner_id, paper_id)

    async def delete(self, owner_id: str, paper_id: str) -> bool:
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM papers WHERE owner_id = ? AND paper_id = ?",
                (owner_id, paper_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def list_all(self, owner_id: str) -> list[Paper]:
        await self._ensure_initialized()

        papers = []
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("""
                SELECT * FROM papers
                WHERE owner_id = ?
                ORDER BY last_modified DESC
            """, (owner_id,)) as cursor:
                async for row in cursor:
                    papers.append(self._row_to_paper(row))

        return papers

    def _row_to_paper(self, row: aiosqlite.Row) -> Paper:
        return Paper(
            id=row["paper_id"],
            owner_id=row["owner_id"],
            title=row["title"],
            abstract=row["abstract"],
            sections=[Section.from_dict(s) for s in json.loads(row["sections"] or "[]")],
            citations=[Citation.from_dict(c) for c in json.loads(row["citations"] or "[]")],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_modified=datetime.fromisoformat(row["last_modified"]),
        )

    # Convenience operations over get/update

    async def _require(self, owner_id: str, paper_id: str) -> Paper:
        paper = await self.get(owner_id, paper_id)
        if paper is None:
            raise PaperNotFound(f"Paper not found: {paper_id}")
        return paper

    async def create_paper(self, owner_id: str, title: str, abstract: str = "") -> Paper:
        return await self.put(owner_id, create_empty_paper(title, abstract, owner_id))

    async def add_section(
        self,
        owner_id: str,
        paper_id: str,
        title: str,
        content: str = "",
        order: Optional[int] = None,
    ) -> Section:
        paper = await self._require(owner_id, paper_id)
        if order is None:
            order = max((s.order for s in paper.sections), default=-1) + 1

        section = Section(id=new_id(), title=title, content=content, order=order)
        await self.update(owner_id, paper_id, {"sections": paper.sections + [section]})
        return section

    async def update_section(self, owner_id: str, paper_id: str, section_id: str, **changes) -> Section:
        paper = await self._require(owner_id, paper_id)
        section = paper.get_section(section_id)
        if section is None:
            raise StoreError(f"Section not found: {section_id}")

        updated = replace(section, **changes)
        sections = [updated if s.id == section_id else s for s in paper.sections]
        await self.update(owner_id, paper_id, {"sections": sections})
        return updated

    async def delete_section(self, owner_id: str, paper_id: str, section_id: str) -> None:
        paper = await self._require(owner_id, paper_id)
        sections = [s for s in paper.sections if s.id != section_id]
        await self.update(owner_id, paper_id, {"sections": sections})

    async def add_citation(self, owner_id: str, paper_id: str, citation: Citation) -> Citation:
        paper = await self._require(owner_id, paper_id)
        added = replace(citation, id=new_id())
        await self.update(owner_id, paper_id, {"citations": paper.citations + [added]})
        return added

    async def update_citation(self, owner_id: str, paper_id: str, citation_id: str, **changes) -> Citation:
        paper = await self._require(owner_id, paper_id)
        current = next((c for c in paper.citations if c.id == citation_id), None)
        if current is None:
            raise StoreError(f"Citation not found: {citation_id}")

        updated = replace(current, **changes)
        citations = [updated if c.id == citation_id else c for c in paper.citations]
        await self.update(owner_id, paper_id, {"citations": citations})
        return updated

    async def delete_citation(self, owner_id: str, paper_id: str, citation_id: str) -> None:
        paper = await self._require(owner_id, paper_id)
        citations = [c for c in paper.citations if c.id != citation_id]
        await self.update(owner_id, paper_id, {"citations": citations})
