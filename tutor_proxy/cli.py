#!/usr/bin/env python
"""
Command line entry point: run the proxy server, or ask the tutor from a terminal.

    tutor-proxy serve --port 8000
    tutor-proxy ask --topic Python "What is a list comprehension?"
    tutor-proxy review --language python script.py
"""

import argparse
import os
import sys

from .config import Settings
from .errors import ConfigError
from .logging_config import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tutor-proxy", description="Code tutor chat proxy")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (e.g. DEBUG)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the /api/chat proxy server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true")

    ask = subparsers.add_parser("ask", help="Ask the tutor a question through the proxy")
    ask.add_argument("--topic", required=True, help="Technology the tutor specializes in")
    ask.add_argument("message", nargs="+")

    review = subparsers.add_parser("review", help="Get feedback on a code file through the proxy")
    review.add_argument("--language", required=True)
    review.add_argument("file", help="Path to the source file, or - for stdin")

    return parser


def _serve(args, settings: Settings, log_level: str):
    import uvicorn

    uvicorn.run(
        "tutor_proxy.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=log_level.lower(),
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    log_level = (args.log_level or settings.log_level).upper()
    setup_logging(log_level)

    if args.command == "serve":
        # uvicorn imports tutor_proxy.main, whose app reads LOG_LEVEL itself
        os.environ["LOG_LEVEL"] = log_level
        _serve(args, settings, log_level)
        return 0

    from .chat_client import ChatClientService

    client = ChatClientService(settings)
    if args.command == "ask":
        print(client.generate_tutor_response([" ".join(args.message)], args.topic))
    elif args.command == "review":
        if args.file == "-":
            code = sys.stdin.read()
        else:
            try:
                with open(args.file, encoding="utf-8") as f:
                    code = f.read()
            except OSError as e:
                print(f"ERROR: cannot read {args.file}: {e}", file=sys.stderr)
                return 1
        print(client.generate_code_feedback(code, args.language))
    return 0


if __name__ == "__main__":
    sys.exit(main())
