"""paperdraft - research paper drafting with AI assistance and paginated PDF export."""

__version__ = "0.1.0"
