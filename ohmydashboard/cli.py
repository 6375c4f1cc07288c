#!/usr/bin/env python3
"""Start the OhMyDashboard server.

Usage:
  ohmydashboard
  ohmydashboard --port 8080 --host 0.0.0.0
"""
from __future__ import annotations

import argparse

import uvicorn

from ohmydashboard import config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ohmydashboard", description="OpenCode session monitoring dashboard")
    parser.add_argument("-p", "--port", type=int, default=config.PORT, help=f"Port to listen on (default: {config.PORT})")
    parser.add_argument("--host", default=config.HOST, help=f"Interface to bind (default: {config.HOST})")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    from ohmydashboard.main import app
    from ohmydashboard.reader import dashboard_reader

    print()
    print("  \x1b[36m◉\x1b[0m \x1b[1mOhMyDashboard\x1b[0m")
    print()
    print(f"  \x1b[32m→\x1b[0m http://{args.host}:{args.port}")
    print(f"  \x1b[90m📂 {dashboard_reader.backend.base_path}\x1b[0m")
    print()

    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
