"""
Main entry point for the Apps Script Patch MCP server.
Loads configuration, sets up logging and serves the MCP tools over stdio.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.mcp_servers.apps_script_server import AppsScriptMCPServer
from src.utils.config_loader import get_config
from src.utils.google_auth import AppsScriptAuth
from src.utils.logging_config import setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apps Script Patch MCP Server")
    parser.add_argument(
        "--token-path",
        type=str,
        default=None,
        help="Path to OAuth token file (default: GOOGLE_TOKEN_PATH or config/google_token.json)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: APP_LOG_LEVEL or INFO)"
    )
    parser.add_argument(
        "--authorize",
        action="store_true",
        help="Run the OAuth consent flow, store the token and exit"
    )
    return parser.parse_args(argv)


async def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    config = get_config()
    if args.token_path:
        config = config.model_copy(update={"token_path": Path(args.token_path)})

    setup_logging(args.log_level or config.log_level, config.log_dir, config.enable_file_logging)
    logger = logging.getLogger(__name__)

    if args.authorize:
        auth = AppsScriptAuth(config.token_path, auth_config=config.google_auth)
        auth.authorize(config.client_secrets_path)
        logger.info(f"OAuth token saved to {config.token_path}")
        return

    server = AppsScriptMCPServer.from_config(config)
    logger.info("Starting Apps Script Patch MCP server")
    await server.run()


def cli():
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
