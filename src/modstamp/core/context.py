"""Substitution context: the resolved variable values of a single generation run."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from modstamp.core.errors import InvalidAssignment, PlaceholderError
from modstamp.core.manifest import LoaderVariant, Manifest
from modstamp.core.substitution import substitute


class SubstitutionContext(Mapping[str, str]):
    """Read-only mapping from variable name to resolved value."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = MappingProxyType(dict(values))

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"SubstitutionContext({dict(self._values)!r})"


def build_context(manifest: Manifest, assignments: Mapping[str, str]) -> SubstitutionContext:
    """Resolve every manifest variable in declaration order.

    A value comes from *assignments* if present, otherwise from the variable's
    derivation, otherwise from its default rendered against the variables
    resolved so far.

    Raises:
        InvalidAssignment: For unknown names, missing required variables or values
            that do not satisfy the variable's kind.
    """
    unknown = sorted(n for n in assignments if manifest.variable(n) is None)
    if unknown:
        raise InvalidAssignment(
            f"unknown variable(s) for template {manifest.name!r}: {', '.join(unknown)}"
        )

    resolved: dict[str, str] = {}
    problems: list[str] = []
    for variable in manifest.variables:
        if variable.name in assignments:
            value = assignments[variable.name]
        elif variable.derive is not None:
            source = resolved.get(variable.derive.source)
            if source is None:
                # The source already failed; it is reported on its own.
                continue
            value = variable.derive.apply(source)
        elif variable.default is not None:
            try:
                value = substitute(variable.default, resolved).text
            except PlaceholderError:
                continue
        else:
            problems.append(f"missing required variable {variable.name!r}")
            continue

        if problem := variable.check(value):
            problems.append(f"{variable.name}: {problem}")
            continue
        resolved[variable.name] = value

    if problems:
        raise InvalidAssignment("\n".join(problems))
    return SubstitutionContext(resolved)


def select_variants(manifest: Manifest, names: Iterable[str]) -> tuple[LoaderVariant, ...]:
    """Look up the selected variants, sorted by name. An empty selection is valid."""
    selected = sorted(set(names))
    unknown = [n for n in selected if manifest.variant(n) is None]
    if unknown:
        valid = ", ".join(manifest.variant_names) or "none"
        raise InvalidAssignment(
            f"unknown variant(s) {', '.join(unknown)} for template {manifest.name!r}"
            f" (available: {valid})"
        )
    return tuple(manifest.variant(n) for n in selected)  # type: ignore[misc]
