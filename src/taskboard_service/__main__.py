"""Entry point for the taskboard service."""

import asyncio
import signal
import sys
from typing import NoReturn

from taskboard_service.config import Settings, get_settings
from taskboard_service.utils.logging import get_logger, setup_logging


async def run_services(settings: Settings | None = None) -> None:
    """Run the HTTP and WebSocket server until a shutdown signal arrives."""
    import uvicorn

    from taskboard_service import __version__
    from taskboard_service.api.http_server import create_http_server
    from taskboard_service.storage.document_store import DocumentStore

    settings = settings or get_settings()
    logger = get_logger(__name__)

    logger.info("starting_taskboard_service", version=__version__, host=settings.host, port=settings.port)

    store = DocumentStore(str(settings.resolved_database_path))
    app = create_http_server(store=store, settings=settings)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        log_config=None,
    )
    server = uvicorn.Server(config)

    # Setup graceful shutdown
    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        server.should_exit = True

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        await server.serve()
    finally:
        logger.info("taskboard_service_stopped")


def main() -> NoReturn:
    """Main entry point."""
    setup_logging()
    try:
        asyncio.run(run_services())
    except KeyboardInterrupt:
        pass
    sys.exit(0)


if __name__ == "__main__":
    main()
