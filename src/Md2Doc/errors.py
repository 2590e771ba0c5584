from __future__ import annotations


class Md2DocError(Exception):
    """Base class for conversion failures."""


class ConversionError(Md2DocError):
    """A single formula could not be converted to a math object."""

    def __init__(self, latex: str, reason: str) -> None:
        super().__init__(f"Cannot convert formula {latex!r}: {reason}")
        self.latex = latex
        self.reason = reason


class MathEngineError(Md2DocError):
    """The math conversion engine failed to start."""


class MalformedTokenError(Md2DocError, ValueError):
    """A token could not be normalized into a document block."""


class AssemblyError(Md2DocError):
    """Building or serializing the DOCX package failed."""


class ConversionFailedError(Md2DocError):
    """Whole-document failure surfaced to the caller."""
