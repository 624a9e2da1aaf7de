"""
Concierge entry point.

This file handles startup concerns (arg-parsing, logging) and launches the appropriate
interface (API or CLI), or seeds the vector index from the sources file.
"""

import argparse
import logging
import sys

from concierge.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _seed(sources: str) -> int:
    from concierge.memory.bootstrap import (  # pylint: disable=import-outside-toplevel
        seed_index,
    )
    from concierge.memory.vector_index import (  # pylint: disable=import-outside-toplevel
        VectorIndex,
    )

    added = seed_index(VectorIndex(), sources)
    logger.info("Seeded %d documents from %s", added, sources)
    return added


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Concierge application.

    Sets up the command-line interface, initializes logging, and starts the application in
    API, CLI or seed mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the hotel concierge chat service")
    parser.add_argument(
        "--mode",
        choices=["api", "cli", "seed"],
        type=str.lower,
        default="api",
        help="Launch the REST API, the terminal client, or seed the vector index (default: api)",
    )
    parser.add_argument(
        "--sources",
        default=settings.SOURCES_PATH,
        help="Sources file used by --mode seed (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Concierge [%s mode]", args.mode)

    if args.mode == "seed":
        _seed(args.sources)
    elif args.mode == "api":
        from concierge.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
    else:
        # Run the API in a background thread and the terminal client in the main thread
        import threading  # pylint: disable=import-outside-toplevel

        from concierge.api.app import run_api  # pylint: disable=import-outside-toplevel
        from concierge.client.cli import run_cli  # pylint: disable=import-outside-toplevel

        api_thread = threading.Thread(
            target=run_api,
            kwargs={
                "host": "127.0.0.1",
                "port": settings.API_PORT,
                "reload": False,  # Reload doesn't work well with threading
                "log_level": "warning",
            },
            daemon=True,
        )
        api_thread.start()
        run_cli()


if __name__ == "__main__":
    main()
