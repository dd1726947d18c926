"""Persistence for paper drafts."""

from paperdraft.db.papers_store import PaperStore, PaperNotFound, StoreError

__all__ = ["PaperStore", "PaperNotFound", "StoreError"]
