import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from ..config import load_settings, render_settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def main(argv=None):
    parser = argparse.ArgumentParser(prog="tabshells", description="Tabbed PTY session server")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # tabshells serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP/WebSocket session server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind host")
    serve_parser.add_argument("--port", type=int, default=8765, help="Bind port")
    serve_parser.add_argument("--config", default=None, help="Settings YAML (default: $TAB_SHELLS_CONFIG)")
    serve_parser.add_argument("--state", default=None, help="State JSON path (default: $TAB_SHELLS_STATE)")

    # tabshells config
    config_parser = subparsers.add_parser("config", help="Print the effective settings")
    config_parser.add_argument("--config", default=None, help="Settings YAML (default: $TAB_SHELLS_CONFIG)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.command == "config":
        print(render_settings(settings), end="")
        return

    if args.command == "serve":
        from ..api.app import create_app
        from ..store import StateStore

        store = StateStore(Path(args.state).expanduser() if args.state else None)
        app = create_app(settings=settings, store=store)
        uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
