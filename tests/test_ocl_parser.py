"""Tests for :mod:`ocl_parser`."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import ocl_parser
from ocl_parser import (
    Attribute,
    Block,
    Dictionary,
    ListValue,
    Literal,
    NodeType,
    OclParseError,
)


# ---------------------------------------------------------------------------
# Blocks and attributes
# ---------------------------------------------------------------------------


def test_parse_step_block_with_label_and_nested_action() -> None:
    text = """
step "run-a-script" {
    name = "Run a Script"

    action {
        action_type = "Octopus.Script"
    }
}
"""
    (step,) = ocl_parser.parse(text)
    assert isinstance(step, Block)
    assert step.type is NodeType.BLOCK
    assert step.name == "step"
    assert step.labels == ("run-a-script",)
    assert step.line == 2

    name, action = step.children
    assert name == Attribute("name", Literal("string", '"Run a Script"'), line=3)
    assert name.type is NodeType.ATTRIBUTE
    assert isinstance(action, Block)
    assert action.labels == ()
    assert action.children == (
        Attribute("action_type", Literal("string", '"Octopus.Script"'), line=6),
    )


def test_parse_keeps_file_order_of_top_level_nodes() -> None:
    text = 'step "a" {\n}\nstep "b" {}\nstep "c" {\n}\n'
    nodes = ocl_parser.parse(text)
    assert [n.labels for n in nodes] == [("a",), ("b",), ("c",)]


def test_parse_empty_text_returns_empty_tuple() -> None:
    assert ocl_parser.parse("") == ()
    assert ocl_parser.parse("\n# only a comment\n// another\n") == ()


def test_parse_scalar_literal_kinds() -> None:
    text = """
count = 3
ratio = -1.5
enabled = true
disabled = false
kind = Octopus.Script
"""
    nodes = ocl_parser.parse(text)
    assert [n.value for n in nodes] == [
        Literal("number", "3"),
        Literal("number", "-1.5"),
        Literal("boolean", "true"),
        Literal("boolean", "false"),
        Literal("identifier", "Octopus.Script"),
    ]


def test_parse_string_with_escaped_quotes() -> None:
    (attr,) = ocl_parser.parse('name = "say \\"hi\\""\n')
    assert attr.value == Literal("string", '"say \\"hi\\""')


def test_parse_comments_are_ignored() -> None:
    text = """
# leading comment
step "a" { // trailing comment
    name = "A" # after value
}
"""
    (step,) = ocl_parser.parse(text)
    assert step.children == (Attribute("name", Literal("string", '"A"'), line=4),)


# ---------------------------------------------------------------------------
# Lists, dictionaries and heredocs
# ---------------------------------------------------------------------------


def test_parse_list_values() -> None:
    text = 'environments = [\n    "development",\n    "production",\n]\nempty = []\n'
    lists, empty = ocl_parser.parse(text)
    assert lists.value == ListValue(
        (Literal("string", '"development"'), Literal("string", '"production"'))
    )
    assert empty.value == ListValue(())


def test_parse_dictionary_with_dotted_and_quoted_keys() -> None:
    text = """
properties = {
    Octopus.Action.Script.Syntax = "Bash"
    "Octopus.Action.RunOnServer": "true"
}
"""
    (attr,) = ocl_parser.parse(text)
    assert isinstance(attr.value, Dictionary)
    assert [(c.name, c.value.text) for c in attr.value.children] == [
        ("Octopus.Action.Script.Syntax", '"Bash"'),
        ("Octopus.Action.RunOnServer", '"true"'),
    ]


def test_parse_indented_heredoc_is_dedented() -> None:
    text = """
body = <<-EOT
    echo "one"
      echo "two"
    EOT
after = 1
"""
    body, after = ocl_parser.parse(text)
    assert body.value == Literal("heredoc", 'echo "one"\n  echo "two"')
    assert after.line == 6


def test_parse_plain_heredoc_keeps_indentation() -> None:
    text = "body = <<EOT\n  keep\nEOT\n"
    (body,) = ocl_parser.parse(text)
    assert body.value == Literal("heredoc", "  keep")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "line", "message"),
    [
        ('step "a" {\n  name = "A"\n', 3, "expected '}'"),
        ("}\n", 1, "unexpected '}'"),
        ("name =\n", 1, "expected a value"),
        ("body = <<EOT\nnever closed\n", 1, "unterminated heredoc"),
        ("a = 1 b = 2\n", 1, "expected end of line"),
        ("list = [1 2]\n", 1, "expected ',' or ']'"),
        ("\n\nname = @\n", 3, "unexpected character '@'"),
        ("props = {\n  block {}\n}\n", 2, "expected '=' after 'block'"),
    ],
)
def test_parse_errors_report_line(text: str, line: int, message: str) -> None:
    with pytest.raises(OclParseError, match=message) as excinfo:
        ocl_parser.parse(text)
    assert excinfo.value.line == line
    assert str(excinfo.value).startswith(f"line {line}:")


def test_parse_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        ocl_parser.parse("= 1\n")


def test_parse_example_deployment_process() -> None:
    text = (PROJECT_ROOT / "examples" / "passing" / "deployment_process.ocl").read_text(
        encoding="utf-8"
    )
    nodes = ocl_parser.parse(text)
    assert [n.labels[0] for n in nodes] == [
        "generate-github-token",
        "check-for-updates",
        "deploy-web-app",
        "vulnerability-scan",
    ]
