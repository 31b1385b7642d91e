#!/usr/bin/env python3
"""
validate_config.py: report every problem in a prcheck rules file.

Usage:
  python validate_config.py path/to/rules.(json|yaml|yml)

prcheck stops at the first schema error; this script lists all of them.
"""
from __future__ import annotations
import sys, pathlib

from jsonschema import Draft7Validator

SRC_PATH = pathlib.Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from prcheck import SCHEMA_PATH, load_config, load_json

def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python validate_config.py path/to/rules.(json|yaml|yml)", file=sys.stderr)
        return 2

    cfg_path = pathlib.Path(args[0])
    if not cfg_path.exists():
        print(f"ERROR: file not found: {cfg_path}", file=sys.stderr)
        return 2

    try:
        cfg = load_config(cfg_path)
    except Exception as e:
        print(f"ERROR: failed to load rules: {e}", file=sys.stderr)
        return 2

    validator = Draft7Validator(load_json(SCHEMA_PATH))
    errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
    if errors:
        print("RULES VALIDATION ERRORS:", file=sys.stderr)
        for err in errors:
            path = "$" + "".join(f"[{repr(p)}]" if isinstance(p, int) else f".{p}" for p in err.path)
            print(f" - {path}: {err.message}", file=sys.stderr)
        return 1

    print("OK: rules file is valid.")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
