"""Tests for ``llm-bridge detect`` and the top-level group."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from llm_bridge import __version__
from llm_bridge.cli import main

if TYPE_CHECKING:
    from pathlib import Path


class TestMainGroup:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for name in ("detect", "translate", "inspect"):
            assert name in result.output

    def test_bad_config(self, tmp_path: Path) -> None:
        f = tmp_path / "bridge.yaml"
        f.write_text("original_policy: lenient\n")
        result = CliRunner().invoke(main, ["--config", str(f), "detect", "https://api.openai.com"])
        assert result.exit_code == 1
        assert "Error loading config" in result.output


class TestDetectCommand:
    def test_by_url(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["detect", "https://api.anthropic.com/v1/messages"])
        assert result.exit_code == 0
        assert result.output.strip() == "anthropic"

        result = runner.invoke(
            main,
            [
                "detect",
                "https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent",
            ],
        )
        assert result.output.strip() == "google"

    def test_openai_shapes(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["detect", "https://api.openai.com/v1/chat/completions"])
        assert result.output.strip() == "openai (chat)"

        result = runner.invoke(main, ["detect", "https://api.openai.com/v1/responses"])
        assert result.output.strip() == "openai (responses)"

    def test_by_body(self, tmp_path: Path) -> None:
        f = tmp_path / "body.json"
        f.write_text(json.dumps({"contents": [{"role": "user", "parts": [{"text": "hi"}]}]}))
        result = CliRunner().invoke(main, ["detect", "https://proxy.local/v1", str(f)])
        assert result.exit_code == 0
        assert result.output.strip() == "google"

    def test_unreadable_payload(self, tmp_path: Path) -> None:
        f = tmp_path / "body.json"
        f.write_text("{not json")
        result = CliRunner().invoke(main, ["detect", "https://proxy.local", str(f)])
        assert result.exit_code == 1
        assert "Error reading payload" in result.output
