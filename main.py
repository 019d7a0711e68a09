#!/usr/bin/env python3
"""
metricboard -- backend for a social-media metrics dashboard.

Serves the REST API and the realtime WebSocket on one port.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 127.0.0.1 --reload
  python main.py --log-level debug

Environment variables (see core/config.py for the full list):
  JWT_SECRET     Token signing secret, at least 32 chars. Required unless DEBUG=true.
  PORT           Listen port (default 5000).
  DATABASE_URL   SQLAlchemy URL (default sqlite:///./metricboard.db).
  CORS_ORIGINS   Comma-separated allowed browser origins.
  FANOUT_POLICY  "broadcast" (default) or "owner".
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="metricboard",
        description="Run the metricboard API and realtime server.",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Interface to bind (default: {settings.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Port to listen on (default: {settings.port}, from PORT)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only)",
    )
    parser.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default=settings.log_level.lower(),
        help="Uvicorn log level (default: from LOG_LEVEL)",
    )
    args = parser.parse_args()

    print(f"metricboard listening on {args.host}:{args.port} (HTTP + WebSocket /ws)")
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
