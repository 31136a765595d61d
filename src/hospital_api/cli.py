"""Command-line interface for hospital_api."""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .config import load_config
from .errors import ConfigError
from .security.identifiers import sanitize_object_id
from .security.text import DEFAULT_MAX_LENGTH, validate_text
from .security.urls import DEFAULT_ALLOWED_HOSTS, validate_url
from .security.validators import (
    validate_date,
    validate_email,
    validate_medical_text,
    validate_name,
    validate_numeric,
    validate_password,
    validate_phone,
)

FIELD_VALIDATORS = {
    "email": validate_email,
    "name": validate_name,
    "password": validate_password,
    "phone": validate_phone,
    "numeric": validate_numeric,
    "medical": validate_medical_text,
    "date": validate_date,
}


def handle_serve_command(args) -> int:
    """Handle the serve subcommand.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    config_path = Path(args.config) if getattr(args, "config", None) else None

    try:
        config = load_config(config_path)
        config.validate()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level="info")
    return 0


def handle_check_url_command(args) -> int:
    """Handle the check-url subcommand."""
    allowed = args.allow or list(DEFAULT_ALLOWED_HOSTS)
    result = validate_url(args.url, allowed)

    if args.json:
        print(json.dumps({"url": args.url, "allowed": result is not None, "canonical": result}, indent=2))
    else:
        print(result if result is not None else "REJECTED")

    return 0 if result is not None else 1


def handle_scan_text_command(args) -> int:
    """Handle the scan-text subcommand.

    ``--kind text`` runs the generic sanitizer and signature scan; any other
    kind runs the matching field validator instead.
    """
    if args.kind == "text":
        result = validate_text(args.text, max_length=args.max_length)
    else:
        result = FIELD_VALIDATORS[args.kind](args.text)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Sanitized: {result.sanitized}")
        if result.errors:
            print("\nErrors:")
            for error in result.errors:
                print(f"  - {error}")
        print(f"\nStatus: {'VALID' if result.is_valid else 'INVALID'}")

    return 0 if result.is_valid else 1


def handle_check_id_command(args) -> int:
    """Handle the check-id subcommand."""
    result = sanitize_object_id(args.value)
    print(result if result is not None else "INVALID")
    return 0 if result is not None else 1


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="hospital-api",
        description="Hospital management API server and input guard tools",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=3000, help="Bind port")
    serve_parser.add_argument("--config", help="Path to a TOML config file")

    url_parser = subparsers.add_parser(
        "check-url", help="Validate a URL against the host allowlist"
    )
    url_parser.add_argument("url", help="URL to validate")
    url_parser.add_argument(
        "--allow",
        action="append",
        metavar="HOST",
        help="Allowed host (repeatable; default: localhost, 127.0.0.1)",
    )
    url_parser.add_argument("--json", action="store_true", help="Output JSON")

    text_parser = subparsers.add_parser(
        "scan-text", help="Sanitize text and report detected attack signatures"
    )
    text_parser.add_argument("text", help="Text to scan")
    text_parser.add_argument(
        "--max-length",
        type=int,
        default=DEFAULT_MAX_LENGTH,
        help=f"Maximum allowed length (default: {DEFAULT_MAX_LENGTH})",
    )
    text_parser.add_argument(
        "--kind",
        default="text",
        choices=["text", *FIELD_VALIDATORS],
        help="Field validator to apply (default: text)",
    )
    text_parser.add_argument("--json", action="store_true", help="Output JSON")

    id_parser = subparsers.add_parser(
        "check-id", help="Sanitize a 24-hex resource identifier"
    )
    id_parser.add_argument("value", help="Raw identifier")

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        return handle_serve_command(args)
    if args.command == "check-url":
        return handle_check_url_command(args)
    if args.command == "scan-text":
        return handle_scan_text_command(args)
    if args.command == "check-id":
        return handle_check_id_command(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
