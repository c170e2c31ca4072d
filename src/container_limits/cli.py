from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from container_limits.admission import AdmissionRule, can_admit
from container_limits.config import configure_logging, load_settings
from container_limits.errors import FieldValidationError, RangeValidationError
from container_limits.evaluation import build_metrics, validate_container, validate_line
from container_limits.limits import NUMBER_CONFIG, ConfigTable
from container_limits.models import ContainedItem, Container
from container_limits.range_filter import RangeFilterValidator

logger = logging.getLogger(__name__)


def load_input(path: Path, table: ConfigTable = NUMBER_CONFIG) -> tuple[Container, list[ContainedItem]]:
    """
    Read a container and optional candidates from a JSON file.

    Format:
        {
            "container": {"id": "carry-on", "max_capacity": 40, "max_weight": 10,
                          "tare_weight": 2.5, "contents": [{"quantity": 1, "item": {...}}]},
            "candidates": [{"quantity": 2, "item": {"weight": 300, "weight_unit": "GRAM",
                                                   "volume": 1.5, "volume_unit": "LITER"}}]
        }

    A missing quantity means one unit. Limits and measurements are checked
    against the bounds table and reported together as a FieldValidationError.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if "container" not in data:
        raise ValueError("Input must include 'container'")

    container = Container(**data["container"])
    candidates = [ContainedItem(**c) for c in data.get("candidates", [])]

    issues = []
    try:
        validate_container(container, table)
    except FieldValidationError as e:
        issues += e.issues
    for i, line in enumerate(candidates):
        try:
            validate_line(line, f"candidates[{i}]", table)
        except FieldValidationError as e:
            issues += e.issues
    if issues:
        raise FieldValidationError(issues)
    return container, candidates


def write_output(result: dict, path: str) -> None:
    """Write a result dict as JSON, creating parent folders and overwriting the file."""
    output_path = Path(path).resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"writing result to {output_path}")
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2, sort_keys=True)


def _emit(result: dict[str, Any], output: Optional[str]) -> None:
    if output:
        write_output(result, output)
    print(json.dumps(result, indent=2, sort_keys=True))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="container-limits", description="Container weight and capacity checks")
    sub = parser.add_subparsers(dest="command", required=True)

    metrics = sub.add_parser("metrics", help="current metrics of a container")
    metrics.add_argument("--input", required=True, help="Container JSON file")
    metrics.add_argument("--output", help="Write the result to this JSON file")

    check = sub.add_parser("check", help="would the candidates fit into the container")
    check.add_argument("--input", required=True, help="Container + candidates JSON file")
    check.add_argument("--output", help="Write the result to this JSON file")
    check.add_argument(
        "--rule",
        choices=[r.value for r in AdmissionRule],
        help="either = reject when any limit is exceeded, both = only when both are (default from ADMISSION_RULE)",
    )

    flt = sub.add_parser("filter", help="validate a numeric range filter")
    flt.add_argument("--entity", required=True, help="bag, suitcase or item")
    flt.add_argument("--metric", required=True, help="weight, capacity, volume or quantity")
    flt.add_argument("--min", type=float, dest="low")
    flt.add_argument("--max", type=float, dest="high")
    flt.add_argument("--strict", action="store_true", help="Reject out-of-domain bounds instead of clamping")
    flt.add_argument("--output", help="Write the result to this JSON file")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)

    if args.command == "filter":
        try:
            validator = RangeFilterValidator(args.entity, args.metric)
        except ValueError as e:
            print(f"error: {e}", file=sys.stderr)
            return 2
        raw = {k: v for k, v in (("min", args.low), ("max", args.high)) if v is not None}
        try:
            value = validator.parse(raw, clamp=not args.strict)
        except RangeValidationError as e:
            _emit({"ok": False, "issues": e.issues}, args.output)
            return 1
        _emit({"ok": True, "range": value.model_dump()}, args.output)
        return 0

    try:
        container, candidates = load_input(Path(args.input))
    except (OSError, ValueError, ValidationError) as e:
        print(f"error: cannot read {args.input}: {e}", file=sys.stderr)
        return 2

    if args.command == "metrics":
        metrics = build_metrics(container, settings.near_limit_percent)
        _emit({"container_id": container.id, "metrics": metrics.model_dump(mode="json")}, args.output)
        return 0

    rule = AdmissionRule(args.rule) if args.rule else settings.admission_rule
    decision = can_admit(container, candidates, rule=rule, near_limit=settings.near_limit_percent)
    _emit({"container_id": container.id, **decision.model_dump(mode="json")}, args.output)
    return 0 if decision.ok else 1


if __name__ == "__main__":
    sys.exit(main())
