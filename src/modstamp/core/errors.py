"""Error taxonomy for template loading, substitution and project composition."""

from __future__ import annotations


class ModstampError(Exception):
    """Base class for every error raised by modstamp."""

    exit_code: int = 1


class ValidationError(ModstampError):
    """The template or the invocation is invalid. Nothing was written."""

    exit_code = 2


class InvalidManifest(ValidationError):
    """The manifest is inconsistent with itself or with the template tree."""


class InvalidAssignment(ValidationError):
    """A user-supplied variable value or variant selection is invalid."""


class InvalidOutputPath(ValidationError):
    """A rendered template path is absolute or escapes the destination."""


class PlaceholderError(ValidationError):
    """Base class for errors located at a placeholder in a template."""

    def __init__(
        self,
        message: str,
        *,
        token: str = "",
        line: int | None = None,
        column: int | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.token = token
        self.line = line
        self.column = column
        self.path = path

    def annotate(self, path: str) -> PlaceholderError:
        """Attach the template path where the error occurred."""
        self.path = path
        return self

    def __str__(self) -> str:
        location = self.path or "<text>"
        if self.line is not None:
            location = f"{location}:{self.line}:{self.column}"
        return f"{location}: {self.message}"


class MalformedPlaceholder(PlaceholderError):
    """Unbalanced or nested delimiters, or an invalid identifier inside them."""


class UnresolvedPlaceholder(PlaceholderError):
    """A placeholder names a variable that is not in the substitution context."""

    def __init__(self, name: str, **kwargs) -> None:
        super().__init__(f"unresolved placeholder {name!r}", **kwargs)
        self.name = name


class DestinationError(ModstampError):
    """The destination cannot be used. No filesystem changes were made."""

    exit_code = 3


class DestinationNotEmpty(DestinationError):
    """The destination exists, has content and overwrite was not requested."""


class DestinationBusy(DestinationError):
    """Another run holds the lock for the same destination."""


class IOFailure(ModstampError):
    """Writing the project failed. Everything written in the run was rolled back."""

    exit_code = 4
