"""Tests for the bundled multi-loader Minecraft template."""

from __future__ import annotations

from itertools import combinations
import json
from pathlib import Path
import tomllib

import pytest

from modstamp.core.composer import check_template, compose, plan_project
from modstamp.core.context import build_context, select_variants
from modstamp.core.errors import InvalidAssignment
from modstamp.core.manifest import Manifest, load_manifest
from modstamp.templates import BUILTIN_TEMPLATES_DIR

LOADERS = ["fabric", "forge", "neoforge"]
SELECTIONS = [list(c) for n in range(len(LOADERS) + 1) for c in combinations(LOADERS, n)]
JAVA_ROOT = "common/src/main/java/steve/example_mod"


@pytest.fixture(scope="module")
def minecraft() -> Manifest:
    return load_manifest(BUILTIN_TEMPLATES_DIR / "minecraft")


def _generate(manifest: Manifest, dest: Path, loaders: list[str], lock_dir: Path) -> None:
    context = build_context(manifest, {"mod_name": "Example Mod", "mod_author": "Steve"})
    compose(manifest, context, select_variants(manifest, loaders), dest, lock_dir=lock_dir)


class TestMinecraftTemplate:
    def test_manifest(self, minecraft: Manifest) -> None:
        assert minecraft.variant_names == LOADERS
        assert [v.name for v in minecraft.required_variables()] == ["mod_name", "mod_author"]

    def test_template_is_valid(self, minecraft: Manifest) -> None:
        assert check_template(minecraft) == []

    def test_derived_names(self, minecraft: Manifest) -> None:
        context = build_context(minecraft, {"mod_name": "Example Mod", "mod_author": "Steve"})
        assert context["mod_id"] == "example_mod"
        assert context["package_base"] == "steve.example_mod"
        assert context["package_path"] == "steve/example_mod"
        assert context["main_class_name"] == "ExampleModMod"
        assert context["homepage_url"] == "https://github.com/steve/example_mod"

    @pytest.mark.parametrize("loaders", SELECTIONS, ids=lambda s: "+".join(s) or "none")
    def test_every_selection_resolves(
        self, minecraft: Manifest, tmp_path: Path, lock_dir: Path, loaders: list[str]
    ) -> None:
        dest = tmp_path / "mod"
        _generate(minecraft, dest, loaders, lock_dir)

        assert (dest / JAVA_ROOT / "ExampleModMod.java").is_file()
        for loader in LOADERS:
            assert (dest / loader).exists() == (loader in loaders)
        for path in dest.rglob("*"):
            assert "{{" not in path.name
            if path.is_file():
                text = path.read_text(encoding="utf-8")
                assert "{{" not in text, path
                assert "}}" not in text, path

    def test_constants(self, minecraft: Manifest, tmp_path: Path, lock_dir: Path) -> None:
        dest = tmp_path / "mod"
        _generate(minecraft, dest, [], lock_dir)
        constants = (dest / JAVA_ROOT / "Constants.java").read_text()
        assert "package steve.example_mod;" in constants
        assert 'MOD_ID = "example_mod"' in constants

    def test_fabric_metadata(self, minecraft: Manifest, tmp_path: Path, lock_dir: Path) -> None:
        dest = tmp_path / "mod"
        _generate(minecraft, dest, ["fabric"], lock_dir)
        metadata = json.loads((dest / "fabric/src/main/resources/fabric.mod.json").read_text())
        assert metadata["id"] == "example_mod"
        assert metadata["entrypoints"]["main"] == ["steve.example_mod.ExampleModFabric"]
        assert metadata["depends"]["java"] == ">=21"

    @pytest.mark.parametrize(
        ("loader", "file_name"), [("forge", "mods.toml"), ("neoforge", "neoforge.mods.toml")]
    )
    def test_forge_like_metadata(
        self, minecraft: Manifest, tmp_path: Path, lock_dir: Path, loader: str, file_name: str
    ) -> None:
        dest = tmp_path / "mod"
        _generate(minecraft, dest, [loader], lock_dir)
        metadata = tomllib.loads(
            (dest / loader / "src/main/resources/META-INF" / file_name).read_text()
        )
        assert metadata["mods"][0]["modId"] == "example_mod"
        assert metadata["license"] == "mit"

    @pytest.mark.parametrize("loader", LOADERS)
    def test_service_registration(
        self, minecraft: Manifest, tmp_path: Path, lock_dir: Path, loader: str
    ) -> None:
        dest = tmp_path / "mod"
        _generate(minecraft, dest, [loader], lock_dir)
        services = dest / loader / "src/main/resources/META-INF/services"
        service = services / "steve.example_mod.platform.services.IPlatformHelper"
        implementation = service.read_text().strip()
        assert implementation.startswith("steve.example_mod.platform.")
        class_file = implementation.rsplit(".", 1)[1] + ".java"
        platform_dir = dest / loader / "src/main/java/steve/example_mod/platform"
        assert (platform_dir / class_file).is_file()

    def test_all_variables_used_with_every_loader(self, minecraft: Manifest) -> None:
        context = build_context(minecraft, {"mod_name": "Example Mod", "mod_author": "Steve"})
        plan = plan_project(minecraft, context, select_variants(minecraft, LOADERS))
        assert plan.unused_variables == []

    def test_name_starting_with_digit(
        self, minecraft: Manifest, tmp_path: Path, lock_dir: Path
    ) -> None:
        context = build_context(minecraft, {"mod_name": "2048 Blocks", "mod_author": "Steve"})
        assert context["mod_id"] == "m2048_blocks"
        assert context["mod_class"] == "Mod2048Blocks"
        assert context["main_class_name"] == "Mod2048BlocksMod"

        dest = tmp_path / "mod"
        compose(minecraft, context, select_variants(minecraft, LOADERS), dest, lock_dir=lock_dir)
        java_root = dest / "common/src/main/java/steve/m2048_blocks"
        assert (java_root / "Mod2048BlocksMod.java").is_file()
        assert (dest / "fabric/src/main/java/steve/m2048_blocks/Mod2048BlocksFabric.java").is_file()

    @pytest.mark.parametrize("name", ['The "Best" Mod', "Back\\slash", "Two\nLines"])
    def test_names_that_break_quoted_metadata_are_rejected(
        self, minecraft: Manifest, name: str
    ) -> None:
        with pytest.raises(InvalidAssignment, match="mod_name: .*quote, backslash"):
            build_context(minecraft, {"mod_name": name, "mod_author": "Steve"})

    def test_metadata_stays_parseable(
        self, minecraft: Manifest, tmp_path: Path, lock_dir: Path
    ) -> None:
        values = {
            "mod_name": "Steve's {Blocks} & Co",
            "mod_author": "Steve O'Neil",
            "description": "Adds '''blocks''' and more",
        }
        context = build_context(minecraft, values)
        dest = tmp_path / "mod"
        compose(minecraft, context, select_variants(minecraft, LOADERS), dest, lock_dir=lock_dir)

        fabric = json.loads((dest / "fabric/src/main/resources/fabric.mod.json").read_text())
        assert fabric["name"] == values["mod_name"]
        assert fabric["authors"] == [values["mod_author"]]
        assert fabric["description"] == values["description"]
        for loader, file_name in [("forge", "mods.toml"), ("neoforge", "neoforge.mods.toml")]:
            metadata = tomllib.loads(
                (dest / loader / "src/main/resources/META-INF" / file_name).read_text()
            )
            assert metadata["mods"][0]["displayName"] == values["mod_name"]
            assert metadata["mods"][0]["authors"] == values["mod_author"]
            assert metadata["mods"][0]["description"] == values["description"]
