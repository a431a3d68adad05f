#!/usr/bin/env python
"""Main entry point for the Bear Notes MCP server."""
import argparse
import logging
import os
import sys
from pathlib import Path

from bear_mcp.config import config
from bear_mcp.models.db_models import init_engine
from bear_mcp.observability import configure_logging
from bear_mcp.server.mcp_server import BearMcpServer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Bear Notes MCP Server")
    parser.add_argument(
        "--db-path",
        help="Path to Bear's database.sqlite (opened read-only)",
        type=str,
        default=os.environ.get("BEAR_DB_PATH")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("BEAR_MCP_LOG_LEVEL", "INFO")
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for rotating log files (default: ~/.bear-mcp/logs)",
        type=str,
        default=None
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.db_path:
        config.bear_db_path = Path(args.db_path)
    if args.log_dir:
        config.log_dir = Path(args.log_dir)


def main(argv=None):
    """Run the Bear Notes MCP server."""
    args = parse_args(argv)
    update_config(args)

    # Configure logging (console + persistent file logging with rotation)
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(log_dir=config.log_dir, level=log_level, console=True)
    except Exception as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    try:
        db_path = config.require_db_path()
        logger.info(f"Using Bear database (read-only): {db_path}")
        engine = init_engine(config.get_db_url())
    except Exception as e:
        logger.error(f"Failed to open Bear database: {e}")
        sys.exit(1)

    try:
        logger.info("Starting Bear notes MCP server")
        server = BearMcpServer(engine=engine)
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
