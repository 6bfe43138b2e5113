"""Tests for running the app directly via start.py."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from openrouter_cli import __version__

SCRIPT = Path(__file__).resolve().parents[1] / "start.py"


def test_start_script_help() -> None:
    result = subprocess.run(
        [sys.executable, str(SCRIPT), "--help"],
        capture_output=True,
        text=True,
        check=False,
    )

    assert result.returncode == 0
    assert "CLI interface for models through OpenRouter" in result.stdout
    assert "{chat,yolo,models}" in result.stdout


def test_start_script_version() -> None:
    result = subprocess.run(
        [sys.executable, str(SCRIPT), "--version"],
        capture_output=True,
        text=True,
        check=False,
    )

    assert result.returncode == 0
    assert result.stdout.strip() == f"openrouter {__version__}"
