"""Template manifest: declared variables, their kinds and the loader variants."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
import fnmatch
import logging
from pathlib import Path, PurePosixPath
import re
import tomllib
from typing import Any

from modstamp.core.errors import InvalidManifest, MalformedPlaceholder
from modstamp.core.substitution import CLOSE, IDENTIFIER_RE, OPEN, find_placeholders
from modstamp.lib.naming import TRANSFORMS

logger = logging.getLogger(__name__)

MANIFEST_NAME = "modstamp.toml"

_PACKAGE_RE = re.compile(r"[a-z_][a-z0-9_]*(\.[a-z_][a-z0-9_]*)*")
_PATH_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(/[A-Za-z_][A-Za-z0-9_]*)*")
# Characters that would end or escape a quoted JSON, TOML or Java string literal.
_UNQUOTABLE_RE = re.compile(r"[\"\\\x00-\x1f\x7f]")

_TEMPLATE_KEYS = {"name", "description", "common", "verbatim"}
_VARIABLE_KEYS = {"kind", "default", "derive", "choices", "description", "prompt"}
_DERIVE_KEYS = {"from", "transform"}
_VARIANT_KEYS = {"path", "target", "label"}


class VariableKind(str, Enum):
    """Semantic kind of a template variable, used to validate its values."""

    IDENTIFIER = "identifier"
    PACKAGE = "package"
    PATH = "path"
    TEXT = "text"
    STRING = "string"
    CHOICE = "choice"


@dataclass(frozen=True)
class Derivation:
    """Compute a variable by applying a named transform to an earlier variable."""

    source: str
    transform: str

    def apply(self, value: str) -> str:
        return TRANSFORMS[self.transform](value)


@dataclass(frozen=True, kw_only=True)
class TemplateVariable:
    """
    A variable declared by a template manifest.

    Attributes:
        name: Placeholder identifier.
        kind: Semantic kind the resolved value must satisfy.
        default: Default value. May reference earlier variables with placeholders.
        derive: Derivation from an earlier variable, used when no value is given.
        choices: Allowed values for ``choice`` variables.
        description: Human-readable help text.
        prompt: Question shown by interactive front-ends.
    """

    name: str
    kind: VariableKind = VariableKind.TEXT
    default: str | None = None
    derive: Derivation | None = None
    choices: tuple[str, ...] = ()
    description: str = ""
    prompt: str = ""

    def __post_init__(self) -> None:
        if not IDENTIFIER_RE.fullmatch(self.name):
            raise InvalidManifest(f"variable name {self.name!r} is not an identifier")
        if self.kind is VariableKind.CHOICE and not self.choices:
            raise InvalidManifest(f"variable {self.name!r} is a choice but declares no choices")
        if self.kind is not VariableKind.CHOICE and self.choices:
            raise InvalidManifest(f"variable {self.name!r} declares choices but is not a choice")

    @property
    def required(self) -> bool:
        return self.default is None and self.derive is None

    @property
    def label(self) -> str:
        return self.prompt or self.description or self.name

    def check(self, value: str) -> str | None:
        """Return a description of why *value* is invalid for this variable, or ``None``."""
        match self.kind:
            case VariableKind.IDENTIFIER:
                if not IDENTIFIER_RE.fullmatch(value):
                    return f"{value!r} is not a valid identifier"
            case VariableKind.PACKAGE:
                if not _PACKAGE_RE.fullmatch(value):
                    return f"{value!r} is not a valid lowercase package name"
            case VariableKind.PATH:
                if not _PATH_RE.fullmatch(value):
                    return f"{value!r} is not a valid slash-separated path"
            case VariableKind.CHOICE:
                if value not in self.choices:
                    return f"{value!r} is not one of {', '.join(self.choices)}"
            case VariableKind.TEXT | VariableKind.STRING:
                if OPEN in value or CLOSE in value:
                    return f"{value!r} contains placeholder delimiters"
                if self.kind is VariableKind.STRING and _UNQUOTABLE_RE.search(value):
                    return f"{value!r} contains a quote, backslash or control character"
        return None


@dataclass(frozen=True, kw_only=True)
class LoaderVariant:
    """
    An optional template subtree included or excluded as a unit.

    Attributes:
        name: Variant name used for selection.
        path: Subtree location, relative to the template root.
        target: Output subdirectory, relative to the destination.
        label: Human-readable name.
    """

    name: str
    path: PurePosixPath
    target: PurePosixPath
    label: str = ""

    @property
    def display(self) -> str:
        return self.label or self.name


@dataclass(frozen=True, kw_only=True)
class Manifest:
    """A loaded and validated template manifest."""

    root: Path
    name: str
    description: str = ""
    common: PurePosixPath = PurePosixPath(".")
    variables: tuple[TemplateVariable, ...] = ()
    variants: tuple[LoaderVariant, ...] = ()
    verbatim: tuple[str, ...] = ()
    manifest_name: str = MANIFEST_NAME
    _variables_by_name: Mapping[str, TemplateVariable] = field(
        init=False, repr=False, compare=False
    )
    _variants_by_name: Mapping[str, LoaderVariant] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_variables_by_name", {v.name: v for v in self.variables})
        object.__setattr__(self, "_variants_by_name", {v.name: v for v in self.variants})

    @property
    def variant_names(self) -> list[str]:
        return sorted(self._variants_by_name)

    def variable(self, name: str) -> TemplateVariable | None:
        return self._variables_by_name.get(name)

    def variant(self, name: str) -> LoaderVariant | None:
        return self._variants_by_name.get(name)

    def required_variables(self) -> list[TemplateVariable]:
        return [v for v in self.variables if v.required]

    def is_verbatim(self, rel_path: PurePosixPath) -> bool:
        """Whether the file at *rel_path* (template-relative) is copied without substitution."""
        return any(fnmatch.fnmatchcase(rel_path.as_posix(), p) for p in self.verbatim)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _safe_relative(value: str) -> PurePosixPath | None:
    if not value or "\\" in value:
        return None
    path = PurePosixPath(value)
    if path.is_absolute() or ".." in path.parts:
        return None
    return path


def _is_within(inner: PurePosixPath, outer: PurePosixPath) -> bool:
    return inner.parts[: len(outer.parts)] == outer.parts


def _expect_str(value: Any, where: str, errors: list[str]) -> str | None:
    if not isinstance(value, str):
        errors.append(f"{where} must be a string")
        return None
    return value


def _unknown_keys(
    table: Mapping[str, Any], allowed: set[str], where: str, errors: list[str]
) -> None:
    for key in sorted(set(table) - allowed):
        errors.append(f"unknown key {key!r} in {where}")


def _parse_variable(
    name: str, raw: Any, declared: set[str], errors: list[str]
) -> TemplateVariable | None:
    where = f"variables.{name}"
    if not isinstance(raw, dict):
        errors.append(f"{where} must be a table")
        return None
    _unknown_keys(raw, _VARIABLE_KEYS, where, errors)

    try:
        kind = VariableKind(raw.get("kind", VariableKind.TEXT.value))
    except ValueError:
        valid = ", ".join(k.value for k in VariableKind)
        errors.append(f"{where}.kind {raw.get('kind')!r} is not one of {valid}")
        return None

    choices_raw = raw.get("choices", [])
    if not isinstance(choices_raw, list) or not all(isinstance(c, str) for c in choices_raw):
        errors.append(f"{where}.choices must be a list of strings")
        return None

    default = raw.get("default")
    if default is not None and _expect_str(default, f"{where}.default", errors) is None:
        return None

    derive: Derivation | None = None
    if "derive" in raw:
        derive_raw = raw["derive"]
        if not isinstance(derive_raw, dict):
            errors.append(f"{where}.derive must be a table")
            return None
        _unknown_keys(derive_raw, _DERIVE_KEYS, f"{where}.derive", errors)
        source, transform = derive_raw.get("from"), derive_raw.get("transform")
        if source not in declared:
            errors.append(
                f"{where}.derive.from must name a variable declared earlier, got {source!r}"
            )
            return None
        if transform not in TRANSFORMS:
            errors.append(
                f"{where}.derive.transform {transform!r} is not one of {', '.join(TRANSFORMS)}"
            )
            return None
        derive = Derivation(source=source, transform=transform)

    try:
        variable = TemplateVariable(
            name=name,
            kind=kind,
            default=default,
            derive=derive,
            choices=tuple(choices_raw),
            description=str(raw.get("description", "")),
            prompt=str(raw.get("prompt", "")),
        )
    except InvalidManifest as exc:
        errors.append(str(exc))
        return None

    if default is not None:
        try:
            refs = {p.name for p in find_placeholders(default)}
        except MalformedPlaceholder as exc:
            errors.append(f"{where}.default: {exc.message}")
            return None
        undeclared = sorted(refs - declared)
        if undeclared:
            errors.append(
                f"{where}.default references {', '.join(undeclared)} before declaration"
            )
        if not refs and (problem := variable.check(default)):
            errors.append(f"{where}.default: {problem}")

    return variable


def _parse_variant(
    name: str, raw: Any, root: Path, common: PurePosixPath, errors: list[str]
) -> LoaderVariant | None:
    where = f"variants.{name}"
    if not IDENTIFIER_RE.fullmatch(name):
        errors.append(f"variant name {name!r} is not an identifier")
        return None
    if not isinstance(raw, dict):
        errors.append(f"{where} must be a table")
        return None
    _unknown_keys(raw, _VARIANT_KEYS, where, errors)

    path_raw = _expect_str(raw.get("path", name), f"{where}.path", errors)
    target_raw = _expect_str(raw.get("target", name), f"{where}.target", errors)
    if path_raw is None or target_raw is None:
        return None

    path = _safe_relative(path_raw)
    if path is None or path == PurePosixPath("."):
        errors.append(f"{where}.path {path_raw!r} must be a relative path inside the template")
        return None
    target = _safe_relative(target_raw)
    if target is None or target == PurePosixPath("."):
        errors.append(f"{where}.target {target_raw!r} must be a relative subdirectory")
        return None
    if not (root / path).is_dir():
        errors.append(f"{where}.path {path_raw!r} does not exist in the template")
        return None
    if _is_within(common, path):
        errors.append(f"{where}.path {path_raw!r} contains the common subtree")
        return None

    return LoaderVariant(name=name, path=path, target=target, label=str(raw.get("label", "")))


def load_manifest(root: Path | str, manifest_name: str = MANIFEST_NAME) -> Manifest:
    """Load and validate the manifest of the template at *root*.

    Raises:
        InvalidManifest: On any inconsistency, listing every problem found.
    """
    root = Path(root)
    manifest_path = root / manifest_name
    if not manifest_path.is_file():
        raise InvalidManifest(f"no {manifest_name} found in template {root}")

    try:
        data = tomllib.loads(manifest_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise InvalidManifest(f"{manifest_path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise InvalidManifest(f"cannot read {manifest_path}: {exc}") from exc

    errors: list[str] = []
    _unknown_keys(data, {"template", "variables", "variants"}, "manifest", errors)

    template = data.get("template", {})
    if not isinstance(template, dict):
        raise InvalidManifest(f"{manifest_path}: [template] must be a table")
    _unknown_keys(template, _TEMPLATE_KEYS, "template", errors)

    name = _expect_str(template.get("name", root.name), "template.name", errors) or root.name
    description = _expect_str(template.get("description", ""), "template.description", errors)

    common_raw = _expect_str(template.get("common", "."), "template.common", errors) or "."
    common = _safe_relative(common_raw)
    if common is None:
        errors.append(f"template.common {common_raw!r} must be a relative path inside the template")
        common = PurePosixPath(".")
    elif not (root / common).is_dir():
        errors.append(f"template.common {common_raw!r} does not exist in the template")

    verbatim = template.get("verbatim", [])
    if not isinstance(verbatim, list) or not all(isinstance(p, str) for p in verbatim):
        errors.append("template.verbatim must be a list of glob patterns")
        verbatim = []

    variables_raw = data.get("variables", {})
    if not isinstance(variables_raw, dict):
        raise InvalidManifest(f"{manifest_path}: [variables] must be a table")
    variables: list[TemplateVariable] = []
    declared: set[str] = set()
    for var_name, raw in variables_raw.items():
        variable = _parse_variable(var_name, raw, declared, errors)
        declared.add(var_name)
        if variable is not None:
            variables.append(variable)

    variants_raw = data.get("variants", {})
    if not isinstance(variants_raw, dict):
        raise InvalidManifest(f"{manifest_path}: [variants] must be a table")
    variants: list[LoaderVariant] = []
    for variant_name, raw in variants_raw.items():
        variant = _parse_variant(variant_name, raw, root, common, errors)
        if variant is not None:
            variants.append(variant)

    for i, a in enumerate(variants):
        for b in variants[i + 1 :]:
            if _is_within(a.path, b.path) or _is_within(b.path, a.path):
                errors.append(f"variants {a.name!r} and {b.name!r} have overlapping subtrees")
            if a.target == b.target:
                errors.append(f"variants {a.name!r} and {b.name!r} share target {str(a.target)!r}")

    if errors:
        listing = "\n".join(f"- {e}" for e in errors)
        raise InvalidManifest(f"invalid manifest {manifest_path}:\n{listing}")

    logger.debug(
        "Loaded manifest %s: %d variables, variants %s",
        manifest_path,
        len(variables),
        [v.name for v in variants],
    )
    return Manifest(
        root=root,
        name=name,
        description=description or "",
        common=common,
        variables=tuple(variables),
        variants=tuple(variants),
        verbatim=tuple(verbatim),
        manifest_name=manifest_name,
    )
