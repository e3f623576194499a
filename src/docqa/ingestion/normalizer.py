"""Whitespace normalisation applied before chunking."""

from __future__ import annotations


def normalize(raw: str) -> str:
    """Collapse every run of Unicode whitespace into one space and trim.

    Newlines, tabs and non-breaking spaces are all treated as whitespace.
    """
    return " ".join(raw.split())
