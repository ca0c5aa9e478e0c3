from __future__ import annotations


class CompileError(Exception):
    """Base class for every error that aborts a plugin run."""


class UnresolvedReference(CompileError):
    """Raised when a type name does not match exactly one known symbol."""


class UnsupportedFeature(CompileError):
    """Raised for constructs the model cannot represent (e.g. groups)."""


class MalformedInput(CompileError):
    """Raised when the request or the generated text is not well formed."""


class EmptyRequest(CompileError):
    """Raised when the request names no files and carries no descriptors."""
