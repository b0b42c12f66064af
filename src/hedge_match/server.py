#!/usr/bin/env python
"""Uvicorn server for the matching API."""

import argparse
import logging
import os
from typing import List, Optional

import uvicorn

from .main import default_db_path

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    """Configure logging for the API server and its engine."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("hedge_match").setLevel(level.upper())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the hedge matching API")
    parser.add_argument("--host", default=os.getenv("API_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("API_PORT", "7777")))
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("API_RELOAD", "false").lower() == "true",
        help="Restart on source changes (development)",
    )
    parser.add_argument("--db", default=None, help="SQLite database path (sets HEDGE_MATCH_DB)")
    parser.add_argument(
        "--log-level",
        default=os.getenv("HEDGE_MATCH_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Run the FastAPI application with uvicorn."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    # The app builds its engine lazily from the environment, also under --reload
    if args.db:
        os.environ["HEDGE_MATCH_DB"] = args.db

    logger.info(f"Starting Hedge Match API on {args.host}:{args.port} (database: {default_db_path()})")

    uvicorn.run(
        "hedge_match.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
