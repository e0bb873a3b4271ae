"""
Reinventory CLI - Command-line interface.

This layer provides the user-facing commands, using the SDK layer for all
operations. It handles:
- Argument parsing and credential validation
- Login before and logout after every command
- Newline-delimited JSON output for piping/automation
"""

import argparse
import json
import logging
import os
import sys
from typing import Any

from dotenv import load_dotenv

from reinventory.core.client import CLIError, ValidationError
from reinventory.core.types import (
    AbsoluteInventoryPath,
    Email,
    LoginInfo,
    OneTimePassword,
    Password,
    PasswordLogin,
    RecordId,
    SessionToken,
    TokenLogin,
    UserId,
)
from reinventory.logging_config import LOG_LEVELS, setup_logging
from reinventory.sdk import InventoryClient, Session

logger = logging.getLogger("reinventory.cli")

# =============================================================================
# Output Helpers
# =============================================================================


def json_line(data: Any) -> None:
    """Print one compact JSON document per line."""
    print(json.dumps(data, default=str, ensure_ascii=False))


def error_output(error: CLIError) -> None:
    """Print error and exit."""
    json_line(error.to_dict())
    sys.exit(1)


# =============================================================================
# Argument Types
# =============================================================================


def _argument_type(parse):
    """Adapt a validating parser to argparse, reporting ValidationError as a usage error."""

    def convert(value: str):
        try:
            return parse(value)
        except ValidationError as e:
            raise argparse.ArgumentTypeError(e.message)

    return convert


user_id_type = _argument_type(UserId.parse)
email_type = _argument_type(Email.parse)
record_id_type = _argument_type(RecordId.parse)
path_type = _argument_type(AbsoluteInventoryPath.parse)


# =============================================================================
# Credentials
# =============================================================================


def build_login_info(args: argparse.Namespace, stdin=None) -> LoginInfo | None:
    """
    Turn the credential flags into LoginInfo.

    Raises:
        ValidationError: On missing or mutually exclusive flags, or an empty token

    """
    if args.password is not None:
        return PasswordLogin(
            password=Password(args.password),
            email=args.email,
            user_id=args.user_id,
            totp=OneTimePassword(args.totp) if args.totp else None,
        )

    if args.read_token_from_stdin:
        if args.user_id is None:
            raise ValidationError("You must provide --user-id if --read-token-from-stdin is given.")
        token = (stdin or sys.stdin).readline().strip()
        if not token:
            raise ValidationError("Please provide token from stdin!")
        return TokenLogin(user_id=args.user_id, token=SessionToken(token))

    return None


def resolve_platform(args: argparse.Namespace) -> str:
    """Only Neos is supported; omitting --platform is deprecated."""
    if args.platform is None:
        logger.warning(
            "Deprecated (implicitly implying --platform): in the next major version, the --platform flag "
            "would be required to set manually. To fix this warning, include `--platform neos` in your command line."
        )
        return "neos"
    if args.platform == "resonite":
        raise ValidationError("Resonite is not supported yet")
    return args.platform


def use_color(policy: str) -> bool:
    if policy == "always":
        return True
    if policy == "never":
        return False
    return sys.stderr.isatty() and "NO_COLOR" not in os.environ


def _target_user(session: Session, args: argparse.Namespace) -> UserId:
    owner_id = args.target_user or session.owner_id
    if owner_id is None:
        raise ValidationError("To perform this action, I must know user, to see inventory contents.")
    return owner_id


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_list(session: Session, args: argparse.Namespace) -> int:
    """List records in a directory."""
    owner_id = _target_user(session, args)
    records = list(session.records.walk_directory(owner_id, args.base_dir, max_depth=args.max_depth))

    logger.debug("record count: %d", len(records))
    if not records:
        logger.warning("response is empty! You may want to login?")
    for record in records:
        json_line(record.to_dict())
    return 0


def cmd_metadata(session: Session, args: argparse.Namespace) -> int:
    """Show a directory's own metadata."""
    owner_id = _target_user(session, args)
    metadata = session.get_directory_metadata(owner_id, args.base_dir)
    json_line(metadata.to_dict())
    return 0


def cmd_move(session: Session, args: argparse.Namespace) -> int:
    """Move records to another directory."""
    report = session.move_records(
        args.target_user,
        args.record_id,
        args.to,
        keep_record_id=args.keep_record_id,
        recursive=args.recursive,
    )
    for outcome in report.outcomes:
        json_line(outcome.to_dict())
    return 0 if report.ok else 1


# =============================================================================
# Main CLI
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="reinventory",
        description="Reinventory - manipulate your inventory records from the command line",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Authentication:
  -e EMAIL -p PASSWORD [-t TOTP]       Log in by email
  -u USER_ID -p PASSWORD [-t TOTP]     Log in by user id
  -u USER_ID --read-token-from-stdin   Reuse an existing session token
  (none)                               Anonymous; public inventories only

Examples:
  reinventory -e me@example.com -p secret list Inventory
  reinventory list -u U-someone Inventory/Public -d 2 | jq .name
  echo "$TOKEN" | reinventory -u U-me --read-token-from-stdin move -u U-me -r R-... --to Inventory/Archive
""",
    )
    parser.add_argument("--email", "-e", type=email_type, help="Login email")
    parser.add_argument("--password", "-p", help="Login password")
    parser.add_argument("--totp", "-t", help="One-time password for two-factor login")
    parser.add_argument("--user-id", "-u", type=user_id_type, help="Login user id (U-...)")
    parser.add_argument(
        "--read-token-from-stdin",
        action="store_true",
        help="Read a session token from the first line of stdin instead of logging in",
    )
    parser.add_argument(
        "--keep-record-id",
        action="store_true",
        help="Keep record ids when moving instead of generating new ones",
    )
    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        default=os.environ.get("REINVENTORY_LOG_LEVEL", "warn"),
        help="Log verbosity (default: warn)",
    )
    parser.add_argument("--log-file", help="Also append logs to this file")
    parser.add_argument(
        "--color",
        "-c",
        dest="color_policy",
        choices=["always", "auto", "never"],
        default="auto",
        help="Colorize log output",
    )
    parser.add_argument("--platform", choices=["neos", "resonite"], type=str.lower, help="Target platform")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ========== List ==========
    ls = subparsers.add_parser("list", help="List records in a directory")
    ls.add_argument("-d", "--max-depth", type=int, default=1, help="Descend into child directories (default: 1)")
    ls.add_argument("-u", "--target-user", type=user_id_type, help="Inventory owner (default: logged-in user)")
    ls.add_argument("base_dir", nargs="?", type=path_type, default=AbsoluteInventoryPath(), help="Directory path")
    ls.set_defaults(func=cmd_list)

    # ========== Metadata ==========
    meta = subparsers.add_parser("metadata", help="Show a directory's metadata")
    meta.add_argument("-u", "--target-user", type=user_id_type, help="Inventory owner (default: logged-in user)")
    meta.add_argument("base_dir", nargs="?", type=path_type, default=AbsoluteInventoryPath(), help="Directory path")
    meta.set_defaults(func=cmd_metadata)

    # ========== Move ==========
    move = subparsers.add_parser("move", help="Move records to another directory")
    move.add_argument("-u", "--target-user", type=user_id_type, required=True, help="Inventory owner")
    move.add_argument(
        "-r",
        "--record-id",
        type=record_id_type,
        action="append",
        required=True,
        help="Record to move (repeatable)",
    )
    move.add_argument("--to", type=path_type, required=True, help="Destination directory path")
    move.add_argument("--recursive", action="store_true", help="Move directories with their contents")
    move.set_defaults(func=cmd_move)

    return parser


def run(args: argparse.Namespace, client: InventoryClient | None = None, stdin=None) -> int:
    """Log in, run the selected command, log out. Returns the exit status."""
    try:
        resolve_platform(args)
        credentials = build_login_info(args, stdin=stdin)
        if getattr(args, "max_depth", 1) < 1:
            raise ValidationError("--max-depth must be at least 1")
        session = (client or InventoryClient()).login(credentials)
    except CLIError as e:
        error_output(e)

    with session:
        try:
            return args.func(session, args)
        except CLIError as e:
            error_output(e)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(args.log_level, colored=use_color(args.color_policy), log_file=args.log_file)
    logger.debug("logging initialized")

    sys.exit(run(args))


if __name__ == "__main__":
    main()
