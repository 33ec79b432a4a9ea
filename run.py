"""Run the pentest console API server."""

import argparse
import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import uvicorn

from pentest_console.config import CONFIG, load_envs
from pentest_console.logger import configure_logging, log


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the pentest console API")
    parser.add_argument("--host", default=None, help="Interface to bind (default: API_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind (default: API_PORT)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    return parser


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)

    # Load environment variables
    load_envs(PROJECT_ROOT)
    configure_logging(CONFIG.log_level)

    host = args.host or CONFIG.api_host
    port = args.port or CONFIG.api_port
    log(f"[api] listening on http://{host}:{port}", env=CONFIG.environment)

    uvicorn.run(
        "pentest_console.api.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level=CONFIG.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
