"""Library Circulation MCP Server - FastMCP Implementation

Exposes the circulation engine to MCP clients over stdio.

Features exposed:
- Tools: issue, return, renew, reserve, cancel reservation, pay fine
- Resources: overdue issues, fine totals, circulation counts, popular books,
  monthly borrowing, member history and recommendations, reservation queues
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from library_circulation.circulation.engine import get_engine
from library_circulation.config import CirculationConfig, get_config
from library_circulation.resources import all_resources
from library_circulation.tools import all_tools

# Initialize logging - stderr for logs, stdout for MCP protocol
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)


def create_server(config: CirculationConfig) -> FastMCP:
    """Create the FastMCP instance and register every tool and resource."""
    server = FastMCP(
        name=config.server_name,
        version=config.server_version,
        instructions=(
            "Library Circulation MCP Server - issues, returns, renews and reserves "
            "library books while keeping copy counts, reservation order and member "
            "fines consistent. Use tools to change circulation state and resources "
            "to read overdue, fine and circulation reports."
        ),
    )

    for resource in all_resources:
        uri = resource.get("uri_template", resource.get("uri"))
        if not uri:
            logger.error("Resource missing URI: %s", resource)
            continue

        logger.debug("Registering resource: %s with URI: %s", resource["name"], uri)
        try:
            server.resource(
                uri=uri,
                name=resource["name"],
                description=resource["description"],
                mime_type=resource["mime_type"],
            )(resource["handler"])
        except Exception:
            logger.exception("Failed to register resource %s", resource["name"])
            raise

    logger.info("Registered %d resources", len(all_resources))

    for tool in all_tools:
        logger.debug("Registering tool: %s", tool["name"])
        try:
            server.tool(
                name=tool["name"],
                description=tool["description"],
            )(tool["handler"])
        except Exception:
            logger.exception("Failed to register tool %s", tool["name"])
            raise

    logger.info("Registered %d tools", len(all_tools))
    return server


config = get_config()
mcp = create_server(config)


def run_stdio_server() -> None:
    """Run the MCP server using stdio transport.

    Stdin receives JSON-RPC requests, stdout sends responses.
    """
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)

    if config.is_development:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled - verbose protocol logging active")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    engine = get_engine()

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    # Load the snapshot before the first request so storage errors surface at startup
    snapshot = engine.snapshot()
    if snapshot.is_empty:
        logger.warning("No circulation data found in %s; starting with an empty library", config.database_path)
    logger.info(
        "Circulation state loaded: %d books, %d members, %d issues, %d reservations",
        len(snapshot.books),
        len(snapshot.members),
        len(snapshot.issues),
        len(snapshot.reservations),
    )

    try:
        logger.info("MCP Server ready and waiting for connections...")
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)
    finally:
        engine.close()


def main() -> None:
    """Main entry point for the MCP server.

    Starts the server via ``library-circulation`` or ``python -m library_circulation.server``.
    """
    try:
        logger.info("=" * 60)
        logger.info("Library Circulation MCP Server")
        for key, value in config.server_info.items():
            logger.info("%s: %s", key.capitalize(), value)
        logger.info("Database: %s", config.database_path)
        logger.info("Debug Mode: %s", config.debug)
        logger.info("=" * 60)

        if config.transport == "stdio":
            run_stdio_server()
        else:
            logger.error("Unsupported transport: %s", config.transport)
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
