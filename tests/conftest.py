"""Shared fixtures for the modstamp test suite."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

from modstamp.core.manifest import Manifest, load_manifest

SAMPLE_MANIFEST = """\
[template]
name = "sample"
description = "Sample template with two loaders."
common = "common"
verbatim = ["*.png"]

[variables.mod_name]
kind = "text"
prompt = "Mod name"

[variables.mod_id]
kind = "identifier"
derive = { from = "mod_name", transform = "mod_id" }

[variables.author]
kind = "text"
default = "Anonymous"

[variants.fabric]
path = "loaders/fabric"
label = "Fabric"

[variants.forge]
path = "loaders/forge"
label = "Forge"
"""

SAMPLE_FILES: dict[str, str | bytes] = {
    "common/README.md": "# {{mod_name}}\n",
    "common/{{mod_id}}/Constants.java": 'MOD_ID = "{{mod_id}}";\n',
    "common/logo.png": b"\x89PNG\r\n{{not_a_variable}}\x00\xff",
    "loaders/fabric/fabric.mod.json": '{"id": "{{mod_id}}"}\n',
    "loaders/forge/META-INF/mods.toml": 'modId="{{mod_id}}"\n',
}

TemplateFactory = Callable[..., Path]


def write_template(root: Path, manifest: str, files: Mapping[str, str | bytes]) -> Path:
    for rel in ("common", "loaders/fabric", "loaders/forge"):
        (root / rel).mkdir(parents=True, exist_ok=True)
    (root / "modstamp.toml").write_text(manifest, encoding="utf-8")
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_template(tmp_path: Path) -> TemplateFactory:
    """Factory writing a template under ``tmp_path/<name>``."""

    def factory(
        manifest: str = SAMPLE_MANIFEST,
        files: Mapping[str, str | bytes] | None = None,
        name: str = "template",
    ) -> Path:
        return write_template(tmp_path / name, manifest, SAMPLE_FILES if files is None else files)

    return factory


@pytest.fixture
def sample_root(make_template: TemplateFactory) -> Path:
    return make_template()


@pytest.fixture
def sample_manifest(sample_root: Path) -> Manifest:
    return load_manifest(sample_root)


@pytest.fixture
def lock_dir(tmp_path: Path) -> Path:
    return tmp_path / "locks"
