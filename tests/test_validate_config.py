"""Tests for ``scripts/validate_config.py``."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SCRIPTS_PATH = PROJECT_ROOT / "scripts"
if str(SCRIPTS_PATH) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_PATH))

import validate_config


def test_valid_rules_file(capsys: pytest.CaptureFixture[str]) -> None:
    assert validate_config.main([str(PROJECT_ROOT / "examples" / "rules.yaml")]) == 0
    assert capsys.readouterr().out == "OK: rules file is valid.\n"


def test_reports_every_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "rules.json"
    path.write_text('{"minSteps": 0, "lastStepName": ""}', encoding="utf-8")
    assert validate_config.main([str(path)]) == 1
    err = capsys.readouterr().err
    assert "RULES VALIDATION ERRORS:" in err
    assert " - $.lastStepName:" in err
    assert " - $.minSteps:" in err


def test_usage_and_missing_file(tmp_path: Path) -> None:
    assert validate_config.main([]) == 2
    assert validate_config.main([str(tmp_path / "missing.yaml")]) == 2
