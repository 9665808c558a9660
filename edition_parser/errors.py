"""
Error Taxonomy
==============
Exceptions raised inside the pipeline.

Only ExportRootError escapes a run. Every other condition is caught at the
stage boundary and turned into a human-readable string in that stage's
``errors`` list, next to the partial result.
"""

from __future__ import annotations


class EditionParserError(Exception):
    """Base class for all pipeline errors."""


class ExportRootError(EditionParserError, FileNotFoundError):
    """The export root is missing or unreadable. Aborts the whole run."""


class LoadError(EditionParserError):
    """A single spread file could not be read or mapped to a page range."""


class ExtractionError(EditionParserError):
    """A single article could not be built from its elements."""


class PersistenceError(EditionParserError):
    """An upsert against the persistence layer failed."""
