"""
Development backend entry point.

Serves server.asgi:app with uvicorn.
"""

from __future__ import annotations

import argparse

import uvicorn


def run(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="voice-agent-dev-server",
        description="Local streaming chat backend.",
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="dev auto-reload")
    args = parser.parse_args(argv)

    uvicorn.run(
        "server.asgi:app",
        host=args.host,
        port=args.port,
        log_level="info",
        reload=args.reload,
    )


if __name__ == "__main__":
    run()
