"""Answers files: pre-recorded choices for non-interactive runs."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
import tomllib

from modstamp.core.errors import InvalidAssignment

_ANSWER_KEYS = {"template", "variables", "variants", "overwrite"}


@dataclass(kw_only=True)
class Answers:
    """
    Choices for one generation run. ``None`` means "not specified".

    Attributes:
        template: Template name or directory.
        variables: Variable assignments.
        variants: Selected variant names.
        overwrite: Whether to write into a non-empty destination.
    """

    template: str | None = None
    variables: dict[str, str] = field(default_factory=dict)
    variants: list[str] | None = None
    overwrite: bool | None = None

    def merged(
        self,
        *,
        template: str | None = None,
        variables: Mapping[str, str] | None = None,
        variants: list[str] | None = None,
        overwrite: bool | None = None,
    ) -> Answers:
        """Return a copy where the given values take precedence over this one's."""
        return replace(
            self,
            template=template if template is not None else self.template,
            variables={**self.variables, **(variables or {})},
            variants=variants if variants is not None else self.variants,
            overwrite=overwrite if overwrite is not None else self.overwrite,
        )


def parse_assignments(pairs: Iterable[str]) -> dict[str, str]:
    """Parse ``key=value`` strings. Later assignments to the same key win."""
    result: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise InvalidAssignment(f"expected KEY=VALUE, got {pair!r}")
        result[key] = value
    return result


def load_answers(path: Path | str) -> Answers:
    """Load an answers file.

    Example::

        template = "minecraft"
        variants = ["fabric", "neoforge"]

        [variables]
        mod_name = "Example Mod"
        mod_author = "Steve"

    Raises:
        InvalidAssignment: If the file is missing, unparsable or malformed.
    """
    path = Path(path)
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise InvalidAssignment(f"cannot read answers file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise InvalidAssignment(f"answers file {path}: {exc}") from exc

    errors: list[str] = []
    for key in sorted(set(data) - _ANSWER_KEYS):
        errors.append(f"unknown key {key!r}")

    template = data.get("template")
    if template is not None and not isinstance(template, str):
        errors.append("template must be a string")

    variables = data.get("variables", {})
    if not isinstance(variables, dict) or not all(isinstance(v, str) for v in variables.values()):
        errors.append("[variables] must map names to strings")
        variables = {}

    variants = data.get("variants")
    if variants is not None and (
        not isinstance(variants, list) or not all(isinstance(v, str) for v in variants)
    ):
        errors.append("variants must be a list of strings")

    overwrite = data.get("overwrite")
    if overwrite is not None and not isinstance(overwrite, bool):
        errors.append("overwrite must be a boolean")

    if errors:
        listing = "\n".join(f"- {e}" for e in errors)
        raise InvalidAssignment(f"invalid answers file {path}:\n{listing}")

    return Answers(
        template=template, variables=dict(variables), variants=variants, overwrite=overwrite
    )
