"""Error types for hnmd with source location context."""

from __future__ import annotations


class HnmdError(Exception):
    """Base error with optional source location."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.message = message
        self.line = line
        self.column = column
        loc = ""
        if line is not None:
            loc = f" (line {line}"
            if column is not None:
                loc += f", col {column}"
            loc += ")"
        super().__init__(f"{message}{loc}")


class StructuralParseError(HnmdError):
    """Raised when a document cannot be parsed into a well-formed tree."""


class FrontmatterError(StructuralParseError):
    """Raised when the YAML frontmatter is malformed or mistyped."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        line: int | None = None,
        column: int | None = None,
    ):
        self.field = field
        super().__init__(message, line=line, column=column)


class ExpressionError(HnmdError):
    """Raised when expression text cannot be classified at all."""


class EvaluationError(HnmdError):
    """Raised when an expression fails against runtime data."""

    def __init__(self, message: str, expression: str | None = None):
        self.expression = expression
        super().__init__(message)


class ValidationError(HnmdError):
    """A semantic problem found in an otherwise well-formed document."""


class ComponentImportError(HnmdError):
    """Raised when a component file cannot be found or read."""
