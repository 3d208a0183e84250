#!/usr/bin/env python3
"""
Employee Portal -- command-line entry point.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --memory
  python main.py create-admin alice
  python main.py create-admin alice --password s3cret

Environment variables (see core/config.py for the full list):
  SECRET_KEY    Token signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL  SQLAlchemy URL for the SQL stores (default: sqlite:///employee_portal.db).
  PORT / HOST   Listen address for `serve`.
"""

import argparse
import getpass
import sys

from core.config import Settings, get_settings


def _serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    host = args.host or settings.host
    port = args.port or settings.port

    if args.memory:
        # In-memory stores live inside one process; hand uvicorn the app object.
        from api.main import create_app

        if args.reload:
            print("  [!] --reload is ignored with --memory.")
        app = create_app(settings.model_copy(update={"persistence": "memory"}))
        uvicorn.run(app, host=host, port=port)
    else:
        uvicorn.run("asgi:app", host=host, port=port, reload=args.reload)
    return 0


def _create_admin(settings: Settings, args: argparse.Namespace) -> int:
    from auth.models import User
    from auth.store import UserStore
    from auth.tokens import MAX_PASSWORD_BYTES, hash_password
    from core.errors import DuplicateKeyError

    password = args.password or getpass.getpass(f"Password for {args.username}: ")
    if not password:
        print("  [!] Password must not be empty.")
        return 1
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded.")
        return 1

    store = UserStore(settings.database_url)
    try:
        user_id = store.create_user(User(username=args.username, hashed_password=hash_password(password), role="admin"))
    except DuplicateKeyError:
        print(f"  [!] User '{args.username}' already exists.")
        return 1
    finally:
        store.close()

    print(f"  Admin '{args.username}' created (id {user_id}).")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="employee-portal",
        description="Authenticated employee directory API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py serve --port 8080 --reload
  DEBUG=true python main.py serve --memory
  python main.py create-admin alice
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT or 8000)")
    serve.add_argument("--memory", action="store_true", help="Use in-memory stores; data is lost on exit")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")

    admin = sub.add_parser("create-admin", help="Create an admin user in the SQL store")
    admin.add_argument("username", help="Login name for the new admin")
    admin.add_argument("--password", default=None, help="Password (prompted when omitted)")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = get_settings()
    except ValueError as exc:
        print(f"  [!] Configuration error: {exc}")
        return 1

    if args.command == "serve":
        return _serve(settings, args)
    return _create_admin(settings, args)


if __name__ == "__main__":
    sys.exit(main())
