"""Shared fixtures: a small markdown corpus on disk and a manager over it."""

import pytest

GUIDE = """\
# Guide

Intro text.

## Setup

Install things.

### Database

Create the db.

## Tasks

### Write Docs

- [ ] draft the page

### Review

- [x] proofread

## Usage

Run it.
"""

OTHER = """\
# Other

## Intro

Hello.
"""


def write_docs(root, files):
    """Write ``{relative_path: content}`` under ``root``."""
    for relative, content in files.items():
        target = root / relative.lstrip("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def docs_root(tmp_path):
    """Directory holding /guide.md and /other.md."""
    root = tmp_path / "docs"
    return write_docs(root, {"/guide.md": GUIDE, "/other.md": OTHER})


@pytest.fixture
def manager(docs_root):
    """FileDocumentManager over ``docs_root``."""
    from quire.document.manager import FileDocumentManager

    return FileDocumentManager(docs_root)


@pytest.fixture
def guide_text():
    """Raw content of /guide.md."""
    return GUIDE


@pytest.fixture
def make_docs(tmp_path):
    """Factory writing a corpus under a fresh directory; returns its manager."""
    from quire.document.manager import FileDocumentManager

    def make(files, name="corpus"):
        return FileDocumentManager(write_docs(tmp_path / name, files))

    return make
