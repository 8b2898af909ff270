"""Server entry point."""

import asyncio
import logging
import sys

from src.config import settings

# stdout carries the MCP protocol, so logs go to stderr
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Start the MCP server on stdio."""
    from src.server import serve

    logger.info("Starting Google MCP server...")
    asyncio.run(serve())


if __name__ == "__main__":
    main()
