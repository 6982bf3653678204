from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import load_json, parse_config
from .errors import ConfigError, GltfValidatorError
from .resources import FileResourceLoader
from .validator import ValidationOptions, validate_bytes


log = logging.getLogger(__name__)


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Not an integer: {value}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"Must be >= 0: {value}")
    return parsed


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate a glTF 2.0 (.gltf) or GLB (.glb) asset and print a JSON report.")
    parser.add_argument("input", type=Path, help="Input .gltf or .glb file")
    parser.add_argument("--out", type=Path, default=None, help="Report output path (default: stdout)")
    parser.add_argument("--config", type=Path, default=None, help="Validator config JSON path")
    parser.add_argument(
        "--max-issues",
        type=_non_negative_int,
        default=None,
        help="Stop recording issues after this many (default: 0, unlimited)",
    )
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="CODE",
        help="Issue code to ignore (repeatable)",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON (indent=2)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log validation progress to stderr")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path: Path = args.input
    if not input_path.is_file():
        raise ConfigError(f"Input not found: {input_path}")

    settings = parse_config(load_json(args.config)) if args.config is not None else {}
    if args.max_issues is not None:
        settings["max_issues"] = args.max_issues
    if args.ignore:
        settings["ignored_issues"] = tuple(settings.get("ignored_issues", ())) + tuple(args.ignore)

    try:
        data = input_path.read_bytes()
    except OSError as exc:
        raise GltfValidatorError(f"Failed to read input: {input_path} ({exc})") from exc

    options = ValidationOptions(
        uri=input_path.name,
        resource_loader=FileResourceLoader(input_path.resolve().parent),
        **settings,
    )
    result = validate_bytes(data, options)
    text = json.dumps(result.to_dict(), ensure_ascii=False, indent=2 if args.pretty else None) + "\n"

    if args.out is not None:
        args.out.write_text(text, encoding="utf-8")
        log.info("report written to %s", args.out)
    else:
        sys.stdout.write(text)
    return 1 if result.issues.num_errors else 0


def run() -> None:
    try:
        raise SystemExit(main())
    except GltfValidatorError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    run()
