"""Pytest configuration and fixtures."""

import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from paperdraft.paper.layout import A4
from paperdraft.paper.model import Paper, Section


LOREM = (
    "Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod "
    "tempor incididunt ut labore et dolore magna aliqua. Ut enim ad minim veniam, "
    "quis nostrud exercitation ullamco laboris nisi ut aliquip ex ea commodo "
    "consequat. Duis aute irure dolor in reprehenderit in voluptate velit esse "
    "cillum dolore eu fugiat nulla pariatur. Excepteur sint occaecat cupidatat non "
    "proident, sunt in culpa qui officia deserunt mollit anim id est laborum. "
)


def lorem(length: int) -> str:
    """Lorem ipsum text of exactly ``length`` characters."""
    text = LOREM * (length // len(LOREM) + 1)
    return text[:length]


class FakeClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def a4():
    return A4


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_paper():
    """Short paper that fits on one A4 page."""
    return Paper(
        id="paper-1",
        title="Efficient Attention for Long Documents",
        abstract=(
            "We propose a sparse attention mechanism that reduces the cost of "
            "processing long documents while matching dense attention quality."
        ),
        owner_id="user-1",
        sections=[
            Section(id="s-intro", title="Introduction", content="Long inputs are expensive.", order=0),
            Section(id="s-method", title="Method", content="We route tokens to local windows.", order=1),
            Section(id="s-results", title="Results", content="", order=2),
        ],
    )


@pytest.fixture
def long_paper():
    """Paper whose content needs several A4 pages."""
    return Paper(
        id="paper-long",
        title="A Survey of Everything",
        abstract=lorem(800),
        owner_id="user-1",
        sections=[
            Section(id=f"s-{i}", title=f"Section {i}", content=lorem(2500), order=i)
            for i in range(5)
        ],
    )
