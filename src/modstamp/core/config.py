"""Runtime settings and template lookup."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
from pathlib import Path

from modstamp.core.errors import InvalidManifest
from modstamp.core.manifest import MANIFEST_NAME
from modstamp.templates import BUILTIN_TEMPLATES_DIR

LOCK_DIR_ENV = "MODSTAMP_LOCK_DIR"
TEMPLATE_PATH_ENV = "MODSTAMP_TEMPLATE_PATH"


@dataclass(kw_only=True)
class Settings:
    """
    Settings shared by every run of the tool.

    Attributes:
        lock_dir: Directory holding destination lock files. Defaults to the system
            temporary directory.
        template_paths: Extra directories searched for named templates. Each
            subdirectory holding a manifest is a template. Searched before built-ins.
        manifest_name: File name of the manifest at a template root.
    """

    lock_dir: Path | None = None
    template_paths: list[Path] = field(default_factory=list)
    manifest_name: str = MANIFEST_NAME

    def __post_init__(self) -> None:
        if not self.manifest_name or "/" in self.manifest_name:
            raise ValueError(
                f"manifest_name must be a plain file name, got {self.manifest_name!r}."
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``MODSTAMP_LOCK_DIR`` and ``MODSTAMP_TEMPLATE_PATH``."""
        env = os.environ if environ is None else environ
        lock_dir = Path(env[LOCK_DIR_ENV]) if env.get(LOCK_DIR_ENV) else None
        paths = [Path(p) for p in env.get(TEMPLATE_PATH_ENV, "").split(os.pathsep) if p.strip()]
        return cls(lock_dir=lock_dir, template_paths=paths)

    @property
    def search_paths(self) -> list[Path]:
        return [*self.template_paths, BUILTIN_TEMPLATES_DIR]


def available_templates(settings: Settings) -> dict[str, Path]:
    """Named templates found on the search paths. Earlier paths shadow later ones."""
    found: dict[str, Path] = {}
    for base in settings.search_paths:
        if not base.is_dir():
            continue
        for candidate in sorted(base.iterdir()):
            if (candidate / settings.manifest_name).is_file():
                found.setdefault(candidate.name, candidate)
    return dict(sorted(found.items()))


def resolve_template(name_or_path: str, settings: Settings) -> Path:
    """Find a template by directory path or by name.

    Raises:
        InvalidManifest: If neither a template directory nor a named template matches.
    """
    candidate = Path(name_or_path).expanduser()
    if (candidate / settings.manifest_name).is_file():
        return candidate

    templates = available_templates(settings)
    if name_or_path in templates:
        return templates[name_or_path]

    valid = ", ".join(templates) or "none"
    raise InvalidManifest(
        f"template {name_or_path!r} is neither a template directory nor a known template "
        f"(available: {valid})"
    )
