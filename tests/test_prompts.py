"""Unit tests for interactive prompt functions."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from modstamp.cli._prompts import (
    prompt_overwrite,
    prompt_variable,
    prompt_variables,
    prompt_variants,
)
from modstamp.core.manifest import Manifest, TemplateVariable, VariableKind

JAVA = TemplateVariable(
    name="java_version", kind=VariableKind.CHOICE, choices=("17", "21"), default="21"
)


class TestPromptVariable:
    @patch("builtins.input", return_value="Example Mod")
    def test_text(self, mock_input: MagicMock) -> None:
        result = prompt_variable(TemplateVariable(name="mod_name", prompt="Mod name"))
        assert result == "Example Mod"
        mock_input.assert_called_once()

    @patch("builtins.input", return_value="")
    def test_empty_answer_takes_default(self, mock_input: MagicMock) -> None:
        result = prompt_variable(TemplateVariable(name="version", default="1.0.0"))
        assert result == "1.0.0"

    @patch("builtins.input", return_value="  padded  ")
    def test_answer_is_stripped(self, mock_input: MagicMock) -> None:
        assert prompt_variable(TemplateVariable(name="v")) == "padded"

    @patch("builtins.input", side_effect=EOFError)
    def test_exit_on_eof(self, mock_input: MagicMock) -> None:
        with pytest.raises(SystemExit):
            prompt_variable(TemplateVariable(name="v"))

    @patch("modstamp.cli._prompts.TerminalMenu")
    def test_choice_uses_menu(self, mock_menu_cls: MagicMock) -> None:
        mock_menu_cls.return_value.show.return_value = 0

        assert prompt_variable(JAVA) == "17"
        assert mock_menu_cls.call_args.kwargs["cursor_index"] == 1

    @patch("modstamp.cli._prompts.TerminalMenu")
    def test_choice_exit_on_none(self, mock_menu_cls: MagicMock) -> None:
        mock_menu_cls.return_value.show.return_value = None

        with pytest.raises(SystemExit):
            prompt_variable(JAVA)


class TestPromptVariables:
    @patch("builtins.input", return_value="Example Mod")
    def test_only_missing_required(
        self, mock_input: MagicMock, sample_manifest: Manifest
    ) -> None:
        assert prompt_variables(sample_manifest, {}) == {"mod_name": "Example Mod"}
        mock_input.assert_called_once()

    @patch("builtins.input")
    def test_nothing_to_ask(self, mock_input: MagicMock, sample_manifest: Manifest) -> None:
        assert prompt_variables(sample_manifest, {"mod_name": "x"}) == {}
        mock_input.assert_not_called()


class TestPromptVariants:
    @patch("modstamp.cli._prompts.TerminalMenu")
    def test_returns_selected_names(
        self, mock_menu_cls: MagicMock, sample_manifest: Manifest
    ) -> None:
        mock_menu_cls.return_value.show.return_value = (1, 0)

        assert prompt_variants(sample_manifest) == ["fabric", "forge"]
        assert mock_menu_cls.call_args.args[0] == ["Fabric", "Forge"]

    @patch("modstamp.cli._prompts.TerminalMenu")
    def test_empty_selection(self, mock_menu_cls: MagicMock, sample_manifest: Manifest) -> None:
        mock_menu_cls.return_value.show.return_value = None

        assert prompt_variants(sample_manifest) == []

    @patch("modstamp.cli._prompts.TerminalMenu")
    def test_exit_on_cancel(self, mock_menu_cls: MagicMock, sample_manifest: Manifest) -> None:
        mock_menu_cls.return_value.show.return_value = None
        mock_menu_cls.return_value.chosen_accept_key = None

        with pytest.raises(SystemExit):
            prompt_variants(sample_manifest)


class TestPromptOverwrite:
    @patch("builtins.input", return_value="")
    def test_default_no(self, mock_input: MagicMock, tmp_path: Path) -> None:
        assert prompt_overwrite(tmp_path) is False
        mock_input.assert_called_once()

    @patch("builtins.input", return_value="yes")
    def test_explicit_yes(self, mock_input: MagicMock, tmp_path: Path) -> None:
        assert prompt_overwrite(tmp_path) is True
