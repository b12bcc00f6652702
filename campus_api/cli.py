"""CLI entrypoints for service operational tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence

import uvicorn

from campus_api.config import configure_structlog, get_settings
from campus_api.core.errors import ValidationError
from campus_api.db.session import dispose_engine, get_session_factory
from campus_api.services.otp_service import get_otp_service
from campus_api.services.session_metadata_service import get_session_metadata_service
from campus_api.services.user_service import get_user_service


async def _run_seed_superadmin() -> int:
    """Create the configured SuperAdmin account when it does not exist yet."""
    settings = get_settings()
    session_factory = get_session_factory()
    try:
        async with session_factory() as db_session:
            user, created = await get_user_service().seed_superadmin(
                db_session=db_session,
                username=settings.admin.username,
                email=settings.admin.email,
                password=settings.admin.password.get_secret_value(),
            )
    except ValidationError as exc:
        print(json.dumps({"error": exc.detail}))
        return 1
    finally:
        await dispose_engine()

    print(json.dumps({"user_id": user.id, "username": user.username, "created": created}))
    return 0


async def _run_cleanup_sessions() -> int:
    """Delete expired session metadata rows."""
    session_factory = get_session_factory()
    try:
        async with session_factory() as db_session:
            removed = await get_session_metadata_service().cleanup_expired(db_session=db_session)
    finally:
        await dispose_engine()
    print(json.dumps({"removed": removed}))
    return 0


async def _run_cleanup_otps() -> int:
    """Delete expired, never-verified OTP audit rows."""
    session_factory = get_session_factory()
    try:
        async with session_factory() as db_session:
            removed = await get_otp_service().cleanup_stale(db_session=db_session)
    finally:
        await dispose_engine()
    print(json.dumps({"removed": removed}))
    return 0


def _run_serve(host: str | None, port: int | None, reload: bool) -> int:
    settings = get_settings()
    uvicorn.run(
        "campus_api.main:app",
        host=host or settings.app.host,
        port=port or settings.app.port,
        reload=reload,
        log_config=None,
    )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported operational commands."""
    parser = argparse.ArgumentParser(prog="python -m campus_api.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)

    serve_parser = subcommands.add_parser("serve")
    serve_parser.add_argument("--host", default=None, help="Override APP__HOST for this run.")
    serve_parser.add_argument("--port", type=int, default=None, help="Override APP__PORT.")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes.")

    subcommands.add_parser("seed-superadmin")
    subcommands.add_parser("cleanup-sessions")
    subcommands.add_parser("cleanup-otps")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "serve":
        return _run_serve(host=args.host, port=args.port, reload=args.reload)

    configure_structlog(get_settings())
    if args.command == "seed-superadmin":
        return asyncio.run(_run_seed_superadmin())
    if args.command == "cleanup-sessions":
        return asyncio.run(_run_cleanup_sessions())
    if args.command == "cleanup-otps":
        return asyncio.run(_run_cleanup_otps())
    parser.error("Unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
