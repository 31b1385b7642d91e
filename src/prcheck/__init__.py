"""prcheck

Check an Octopus Deploy config-as-code deployment process before it is merged.

The ``deployment_process.ocl`` file in the given directory is parsed with
:mod:`ocl_parser` and must satisfy a fixed rule set: at least three steps, the
first, second and last steps carry the expected names, and each of those
steps runs a script action.  Rules are checked in order and checking stops at
the first failure.  The defaults can be overridden with a JSON/YAML rules
file validated against ``rules.schema.json``.

Example:
    python -m prcheck path/to/.octopus/project
"""
from __future__ import annotations

import argparse
import json
import operator
import pathlib
import sys
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import yaml
from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError

from ocl_parser import Attribute, Block, Literal, Node, NodeType, OclParseError, parse

SCHEMA_PATH = pathlib.Path(__file__).with_name("rules.schema.json")
DEFAULT_FILENAME = "deployment_process.ocl"
USAGE_MESSAGE = (
    "Pass the directory holding the deployment_process.ocl file as the first argument"
)


class ConfigError(RuntimeError):
    """Raised when the rules file is unusable."""


@dataclass(frozen=True)
class Rules:
    first_step_name: str = "Generate GitHub Token"
    second_step_name: str = "Check for Updates"
    last_step_name: str = "Vulnerability Scan"
    action_type: str = "Octopus.Script"
    min_steps: int = 3


DEFAULT_RULES = Rules()

# rules file key -> Rules field
RULE_KEYS = {
    "minSteps": "min_steps",
    "firstStepName": "first_step_name",
    "secondStepName": "second_step_name",
    "lastStepName": "last_step_name",
    "actionType": "action_type",
}


# ---- Tree queries ---------------------------------------------------------


def _find_child(block: Optional[Block], node_type: NodeType, name: str) -> Optional[Node]:
    if block is None:
        return None
    matches = [c for c in block.children if c.type is node_type and c.name == name]
    return matches[-1] if matches else None


def find_attribute(block: Optional[Block], name: str) -> Optional[Attribute]:
    """Return the last attribute called ``name`` in ``block``, if any."""
    return _find_child(block, NodeType.ATTRIBUTE, name)  # type: ignore[return-value]


def find_block(block: Optional[Block], name: str) -> Optional[Block]:
    """Return the last nested block called ``name`` in ``block``, if any."""
    return _find_child(block, NodeType.BLOCK, name)  # type: ignore[return-value]


def unquote(value: Optional[str]) -> Optional[str]:
    """Strip one pair of surrounding double quotes from ``value``."""
    if value is None:
        return None
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value


def attribute_value(attribute: Optional[Node]) -> Optional[str]:
    """Return the unquoted scalar value of ``attribute``.

    ``None`` is returned for a missing node, a node that is not an attribute
    and an attribute holding a list or dictionary.
    """
    if attribute is None or attribute.type is not NodeType.ATTRIBUTE:
        return None
    value = attribute.value  # type: ignore[union-attr]
    if not isinstance(value, Literal):
        return None
    return unquote(value.text)


# ---- Rules ----------------------------------------------------------------


@dataclass(frozen=True)
class Check:
    """One rule: ``passes(extract(steps), expected)`` or print ``message``."""

    extract: Callable[[Sequence[Block]], Any]
    expected: Any
    message: str
    passes: Callable[[Any, Any], bool] = operator.eq


def step_at(steps: Sequence[Block], index: int) -> Optional[Block]:
    if -len(steps) <= index < len(steps):
        return steps[index]
    return None


def step_name(index: int) -> Callable[[Sequence[Block]], Optional[str]]:
    return lambda steps: attribute_value(find_attribute(step_at(steps, index), "name"))


def step_action_type(index: int) -> Callable[[Sequence[Block]], Optional[str]]:
    def extract(steps: Sequence[Block]) -> Optional[str]:
        action = find_block(step_at(steps, index), "action")
        return attribute_value(find_attribute(action, "action_type"))

    return extract


def build_checks(rules: Rules = DEFAULT_RULES) -> Tuple[Check, ...]:
    """Return the ordered rule set for ``rules``."""
    return (
        Check(
            len,
            rules.min_steps,
            "The deployment process must have at least {expected} steps (was {actual})",
            passes=operator.ge,
        ),
        Check(step_name(0), rules.first_step_name, "First step must be called {expected} (was {actual})"),
        Check(
            step_action_type(0),
            rules.action_type,
            "First step must be a script step of type {expected} (was {actual})",
        ),
        Check(step_name(1), rules.second_step_name, "Second step must be called {expected} (was {actual})"),
        Check(
            step_action_type(1),
            rules.action_type,
            "Second step must be a script step of type {expected} (was {actual})",
        ),
        Check(
            step_name(-1),
            None,
            "Failed to find the name of the last step",
            passes=lambda actual, _: bool(actual),
        ),
        Check(step_name(-1), rules.last_step_name, "Last step must be called {expected} (was {actual})"),
        Check(
            step_action_type(-1),
            rules.action_type,
            "Last step must be a script step of type {expected} (was {actual})",
        ),
    )


def validate(document: Iterable[Node], rules: Rules = DEFAULT_RULES) -> bool:
    """Apply the rule set to the top-level nodes of a parsed deployment process.

    The top-level blocks are the steps.  Returns ``False`` after printing the
    first failing rule, ``True`` when every rule passes.
    """
    steps = [node for node in document if node.type is NodeType.BLOCK]
    for check in build_checks(rules):
        actual = check.extract(steps)
        if not check.passes(actual, check.expected):
            print(check.message.format(actual=actual, expected=check.expected))
            return False

    print("All tests passed!")
    return True


# ---- Rules file -----------------------------------------------------------


def load_json(path: pathlib.Path) -> Dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def load_config(path: pathlib.Path) -> Any:
    text = path.read_text(encoding="utf-8-sig")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return yaml.safe_load(text)


def rules_from_mapping(cfg: Mapping[str, Any], base: Rules = DEFAULT_RULES) -> Rules:
    """Validate ``cfg`` against the schema and overlay it on ``base``."""
    if not isinstance(cfg, Mapping):
        raise ConfigError(f"rules file must contain a mapping, got {type(cfg).__name__}")

    Draft7Validator(load_json(SCHEMA_PATH)).validate(cfg)
    return replace(base, **{RULE_KEYS[key]: value for key, value in cfg.items()})


def load_rules(path: pathlib.Path) -> Rules:
    return rules_from_mapping(load_config(path))


# ---- Checking -------------------------------------------------------------


def check_pr(path: pathlib.Path, rules: Rules = DEFAULT_RULES) -> bool:
    """Read, parse and validate the OCL file at ``path``."""
    try:
        text = pathlib.Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        print(f"ERROR: failed to read {path}: {e}", file=sys.stderr)
        return False

    try:
        document = parse(text)
    except OclParseError as e:
        print(f"ERROR: failed to parse {path}: {e}", file=sys.stderr)
        return False

    return validate(document, rules)


# ---- CLI ------------------------------------------------------------------


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Check an Octopus deployment process OCL file"
    )
    parser.add_argument(
        "directory",
        nargs="?",
        type=pathlib.Path,
        help="Directory holding the deployment process file",
    )
    parser.add_argument(
        "-f",
        "--file",
        default=DEFAULT_FILENAME,
        help=f"Deployment process file name (default: {DEFAULT_FILENAME})",
    )
    parser.add_argument(
        "-r",
        "--rules",
        type=pathlib.Path,
        help="JSON or YAML file overriding the default rules",
    )
    args = parser.parse_args(argv)

    if args.directory is None:
        print(USAGE_MESSAGE)
        return 1

    rules = DEFAULT_RULES
    if args.rules is not None:
        try:
            rules = load_rules(args.rules)
        except ConfigError as e:
            print(f"CONFIG ERROR: {e}", file=sys.stderr)
            return 1
        except ValidationError as e:
            print(f"CONFIG ERROR: {e.message}", file=sys.stderr)
            return 1
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            print(f"ERROR: failed to load rules: {e}", file=sys.stderr)
            return 1

    return 0 if check_pr(args.directory / args.file, rules) else 1
