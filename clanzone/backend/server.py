"""Command-line entry point that serves the claim API with uvicorn."""

from __future__ import annotations

import argparse
import logging
import sys

from clanzone.backend.config import load_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Clan safe zone service")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--log-level", default=settings.log_level)
    parser.add_argument("--migrate", action="store_true", help="apply the claim schema before serving")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.migrate:
        from clanzone.backend.migrate import apply_schema

        database_url = load_settings().database_url
        if not database_url:
            print("CLANZONE_DATABASE_URL is required for --migrate.", file=sys.stderr)
            return 1
        apply_schema(database_url)

    import uvicorn

    uvicorn.run(
        "clanzone.backend.api:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
