#!/usr/bin/env python3
"""CLI management tool for Palette accounts and saved works.

Provides commands to:
- Sign up, log in, or create a synthetic Google account
- List and remove users
- Save an image file as a work, list, export and delete works
- Issue a session token for a user
"""

import argparse
import asyncio
import base64
import getpass
import json
import logging
import sys
from pathlib import Path

# Ensure palette package is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from palette.auth import AuthService
from palette.config import DEFAULT_CONFIG_PATH, load_config
from palette.errors import AuthError, ConfigError
from palette.latency import no_delay
from palette.models import Color, WorkDraft
from palette.storage import SqliteStore
from palette.works import WorkDataService

logger = logging.getLogger("palette.manage")


def _password(args) -> str:
    if args.password:
        return args.password
    return getpass.getpass(f"Password for {args.username}: ")


def _parse_color(text: str) -> Color:
    """Parse ``r,g,b`` or ``#rrggbb``."""
    text = text.strip()
    if text.startswith("#") and len(text) == 7:
        return Color(int(text[1:3], 16), int(text[3:5], 16), int(text[5:7], 16))
    parts = text.split(",")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Invalid color {text!r}, expected r,g,b or #rrggbb")
    try:
        return Color(*(int(p) for p in parts))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid color {text!r}, expected r,g,b or #rrggbb")


def signup(args, auth: AuthService, works: WorkDataService) -> int:
    """Register a new user."""
    password = _password(args)
    if not password:
        print("Error: Password cannot be empty", file=sys.stderr)
        return 1
    try:
        user = asyncio.run(auth.signup(args.username, password))
    except AuthError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"✓ User created: {user.username}")
    return 0


def login(args, auth: AuthService, works: WorkDataService) -> int:
    """Check a username/password pair."""
    try:
        user = asyncio.run(auth.login(args.username, _password(args)))
    except AuthError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"✓ Logged in as {user.username}")
    return 0


def google_signup(args, auth: AuthService, works: WorkDataService) -> int:
    """Create a synthetic Google account."""
    try:
        user = asyncio.run(auth.google_signup())
    except AuthError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"✓ User created: {user.username}")
    return 0


def list_users(args, auth: AuthService, works: WorkDataService) -> int:
    """List all registered usernames."""
    usernames = auth.list_usernames()
    if not usernames:
        print("No users found")
        return 0
    for username in usernames:
        print(username)
    return 0


def remove_user(args, auth: AuthService, works: WorkDataService) -> int:
    """Remove a user's credentials. Their works are left in place."""
    if not auth.remove_user(args.username):
        print(f"Error: User '{args.username}' not found", file=sys.stderr)
        return 1
    print(f"✓ Removed user {args.username}")
    return 0


def save_work(args, auth: AuthService, works: WorkDataService) -> int:
    """Save an image file as a new work for a user."""
    image_path = Path(args.image)
    if not image_path.is_file():
        print(f"Error: Image not found: {image_path}", file=sys.stderr)
        return 1

    draft = WorkDraft(
        name=args.name or image_path.stem,
        image_data=base64.b64encode(image_path.read_bytes()).decode("ascii"),
        color_history=list(args.color or []),
        current_color=args.current_color,
        dominant_colors=list(args.dominant or []),
    )
    work = asyncio.run(works.save_work(args.username, draft))
    print(f"✓ Saved {work.id} ({work.name}) at {work.saved_at}")
    return 0


def list_works(args, auth: AuthService, works: WorkDataService) -> int:
    """List a user's works, newest first."""
    records = asyncio.run(works.load_user_works(args.username))
    if not records:
        print(f"No works found for {args.username}")
        return 0

    print(f"{'ID':<36} {'Saved':<26} {'Colors':<7} Name")
    print("-" * 80)
    for work in records:
        print(f"{work.id:<36} {work.saved_at:<26} {len(work.color_history):<7} {work.name}")
    return 0


def export_work(args, auth: AuthService, works: WorkDataService) -> int:
    """Write a work's image to a file, or dump the record as JSON."""
    work = asyncio.run(works.get_work(args.username, args.work_id))
    if work is None:
        print(f"Error: Work '{args.work_id}' not found for {args.username}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(work.to_dict(), indent=2))
        return 0

    output = Path(args.output or f"{work.id}.png")
    try:
        output.write_bytes(base64.b64decode(work.image_data, validate=True))
    except ValueError as e:
        print(f"Error: Work image is not valid base64: {e}", file=sys.stderr)
        return 1
    print(f"✓ Exported {work.id} to {output}")
    return 0


def delete_work(args, auth: AuthService, works: WorkDataService) -> int:
    """Delete a work. Unknown ids are not an error."""
    asyncio.run(works.delete_work(args.username, args.work_id))
    print(f"✓ Deleted {args.work_id}")
    return 0


def token(args, auth: AuthService, works: WorkDataService) -> int:
    """Log in and print a session token."""
    try:
        user = asyncio.run(auth.login(args.username, _password(args)))
        print(auth.create_token(user))
    except AuthError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


COMMANDS = {
    "signup": signup,
    "login": login,
    "google-signup": google_signup,
    "list-users": list_users,
    "remove-user": remove_user,
    "save-work": save_work,
    "list-works": list_works,
    "export-work": export_work,
    "delete-work": delete_work,
    "token": token,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="palette-manage",
        description="Manage Palette user accounts and saved works",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to JSON config (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--db-path", help="Override the SQLite storage path from config")
    parser.add_argument(
        "--no-latency",
        action="store_true",
        help="Skip the simulated network delays",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: from config, INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for name, help_text in (("signup", "Register a user"), ("login", "Check credentials"), ("token", "Issue a session token")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--username", required=True, help="Username")
        sub.add_argument("--password", help="Password (prompted if omitted)")

    subparsers.add_parser("google-signup", help="Create a synthetic Google account")
    subparsers.add_parser("list-users", help="List all users")

    remove_parser = subparsers.add_parser("remove-user", help="Remove a user")
    remove_parser.add_argument("--username", required=True, help="Username")

    save_parser = subparsers.add_parser("save-work", help="Save an image as a work")
    save_parser.add_argument("--username", required=True, help="Owner")
    save_parser.add_argument("--image", required=True, help="Image file to store")
    save_parser.add_argument("--name", help="Work name (default: image file stem)")
    save_parser.add_argument(
        "--color", type=_parse_color, action="append", help="Color history entry (repeatable)"
    )
    save_parser.add_argument(
        "--dominant", type=_parse_color, action="append", help="Dominant color (repeatable)"
    )
    save_parser.add_argument("--current-color", type=_parse_color, help="Currently selected color")

    list_parser = subparsers.add_parser("list-works", help="List a user's works")
    list_parser.add_argument("--username", required=True, help="Owner")

    export_parser = subparsers.add_parser("export-work", help="Export a work's image")
    export_parser.add_argument("--username", required=True, help="Owner")
    export_parser.add_argument("--work-id", required=True, help="Work id")
    export_parser.add_argument("--output", help="Output file (default: <work id>.png)")
    export_parser.add_argument("--json", action="store_true", help="Print the record as JSON instead")

    delete_parser = subparsers.add_parser("delete-work", help="Delete a work")
    delete_parser.add_argument("--username", required=True, help="Owner")
    delete_parser.add_argument("--work-id", required=True, help="Work id")

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, args.log_level or config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    store = SqliteStore(db_path=args.db_path or config.db_path)
    extra = {"delay": no_delay} if args.no_latency else {}
    auth = AuthService.from_config(config, store, **extra)
    works = WorkDataService.from_config(config, store, **extra)

    try:
        return COMMANDS[args.command](args, auth, works)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
