"""CLI entry point for checking form schemas and validating form data.

Usage:
    python -m dynaform forms/signup.yaml --check
    python -m dynaform forms/signup.yaml --data submission.json
    python -m dynaform forms/signup.yaml --data submission.json --json
    python -m dynaform --list-adapters

Exit codes:
    0  data valid (or schema has no errors with --check)
    1  data invalid (or schema has errors with --check)
    2  schema or data file could not be loaded
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from dynaform.lib.adapters import default_adapter_registry
from dynaform.lib.errors import DynaformError, SchemaLoadError
from dynaform.lib.form import FormSession
from dynaform.lib.observability import get_structlog_logger, setup_logging_from_settings
from dynaform.lib.schema_loader import (
    Severity,
    check_form_schema,
    format_issue_report,
    load_form_data,
    load_form_schema,
)
from dynaform.lib.schema import FormSchema
from dynaform.lib.settings import get_settings

logger = get_structlog_logger("dynaform")

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_LOAD_FAILED = 2


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def list_adapters(as_json: bool = False) -> None:
    """Print the external validation adapters and whether their library is installed."""
    status = default_adapter_registry().status()

    if as_json:
        print(
            json.dumps(
                [
                    {"name": name, "library": library, "available": available}
                    for name, library, available in status
                ],
                indent=2,
            )
        )
        return

    print("External validation adapters:")
    print()
    print(f"  {'Name':<12}  {'Library':<12}  Installed")
    print(f"  {'-' * 12}  {'-' * 12}  {'-' * 9}")
    for name, library, available in status:
        print(f"  {name:<12}  {library:<12}  {_yes_no(available)}")
    print()


def check_schema_command(schema: FormSchema, as_json: bool = False) -> int:
    """Print schema issues; exit code 1 when any issue is an error."""
    issues = check_form_schema(schema)
    has_errors = any(issue.severity == Severity.ERROR for issue in issues)

    if as_json:
        print(
            json.dumps(
                {"valid": not has_errors, "issues": [issue.to_dict() for issue in issues]},
                indent=2,
            )
        )
    else:
        print(format_issue_report(issues))

    return EXIT_INVALID if has_errors else EXIT_OK


async def _evaluate(schema: FormSchema, data: Dict[str, Any]) -> Dict[str, Any]:
    async with FormSession(schema, data) as session:
        result = await session.validate_form()
        return {
            "valid": result.is_valid,
            "errors": result.errors,
            "pending": result.pending_fields,
            "fields": {
                name: {**state.to_dict(), "label": schema.get_field(name).display_label}
                for name, state in session.field_states.items()
            },
        }


def _print_report(schema: FormSchema, report: Dict[str, Any]) -> None:
    title = schema.title or "Form"
    fields: Dict[str, Dict[str, Any]] = report["fields"]
    width = max([len(name) for name in fields] + [5])
    label_width = max([len(state["label"]) for state in fields.values()] + [5])

    print(f"{title} ({len(fields)} field(s))")
    print()
    print(f"  {'Field':<{width}}  {'Label':<{label_width}}  Visible  Required  Disabled  Result")
    print(f"  {'-' * width}  {'-' * label_width}  {'-' * 7}  {'-' * 8}  {'-' * 8}  {'-' * 6}")
    for name, state in fields.items():
        if name in report["pending"]:
            verdict = "pending"
        elif state["error"]:
            verdict = f"error: {state['error']}"
        else:
            verdict = "ok"
        print(
            f"  {name:<{width}}  {state['label']:<{label_width}}  {_yes_no(state['visible']):<7}  "
            f"{_yes_no(state['required']):<8}  {_yes_no(state['disabled']):<8}  {verdict}"
        )
    print()

    if report["valid"]:
        print("Form is valid.")
    else:
        print(f"Form is invalid: {len(report['errors'])} error(s).")


def validate_data_command(
    schema: FormSchema, data: Dict[str, Any], as_json: bool = False
) -> int:
    """Validate data against the schema and print field states and verdicts."""
    report = asyncio.run(_evaluate(schema, data))

    if as_json:
        print(json.dumps(report, indent=2, default=str))
    else:
        _print_report(schema, report)

    return EXIT_OK if report["valid"] else EXIT_INVALID


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="dynaform",
        description="Check dynamic form schemas and validate form data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Check a schema for unknown operators, duplicate fields, ...
    dynaform forms/signup.yaml --check

    # Validate a submission and show derived field states
    dynaform forms/signup.yaml --data submission.json

    # Machine-readable output
    dynaform forms/signup.yaml --data submission.json --json

    # Show which external validation libraries are installed
    dynaform --list-adapters
        """,
    )

    parser.add_argument("schema", nargs="?", help="Form schema file (YAML or JSON)")
    parser.add_argument("--data", help="Form data file (YAML or JSON mapping)")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check the schema itself instead of validating data",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument(
        "--list-adapters",
        action="store_true",
        help="List external validation adapters and exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-log",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument("--log-file", help="Write logs to a file in addition to stderr")

    args = parser.parse_args(argv)

    # DYNAFORM_LOG_* settings apply unless a flag overrides them
    setup_logging_from_settings(
        get_settings(),
        verbose=args.verbose,
        json_format=args.json_log,
        log_file=args.log_file,
    )

    if args.list_adapters:
        list_adapters(as_json=args.json)
        return EXIT_OK

    if not args.schema:
        parser.error("SCHEMA is required unless --list-adapters is given")

    try:
        schema = load_form_schema(args.schema)
        data = load_form_data(args.data) if args.data else {}
    except SchemaLoadError as e:
        logger.error("load_failed", **e.to_dict())
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LOAD_FAILED

    try:
        if args.check:
            return check_schema_command(schema, as_json=args.json)
        return validate_data_command(schema, data, as_json=args.json)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except DynaformError as e:
        logger.error("command_failed", **e.to_dict())
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID


if __name__ == "__main__":
    sys.exit(main())
