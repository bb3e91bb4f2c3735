"""calpost_lite.api.server: aiohttp server exposing the posting operations.

Routes trigger the same operations a scheduled run uses; there is no
background refresher and no cached calendar state between requests.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from aiohttp import web

from calpost_lite.api.middleware import correlation_id_middleware
from calpost_lite.api.routes import register_api_routes
from calpost_lite.api.routes.api_routes import OPERATION_ERRORS
from calpost_lite.core.config_loader import Config
from calpost_lite.core.http_client import close_all_clients
from calpost_lite.domain.post_service import CalendarPostService

logger = logging.getLogger(__name__)

MAX_PORT_ATTEMPTS = 10


async def _close_clients(_app: web.Application) -> None:
    await close_all_clients()
    logger.debug("Shared HTTP clients cleaned up")


def _make_app(config: Config, service: CalendarPostService | None = None) -> web.Application:
    """Create the aiohttp application with routes wired to a post service.

    Args:
        config: Loaded configuration
        service: Pre-built service (tests inject one with fake HTTP transports)
    """
    app = web.Application(middlewares=[correlation_id_middleware])
    service = service or CalendarPostService.from_config(config)

    register_api_routes(app, service)

    app.on_cleanup.append(_close_clients)
    return app


async def _start_site(runner: web.AppRunner, host: str, configured_port: int) -> int:
    """Bind the first free port at or after ``configured_port``.

    Raises:
        RuntimeError: If no port in the range is free
    """
    for port_offset in range(MAX_PORT_ATTEMPTS):
        port = configured_port + port_offset
        site = web.TCPSite(runner, host=host, port=port)
        try:
            await site.start()
        except OSError as e:
            if "address already in use" not in str(e).lower():
                logger.exception("Failed to start server on %s:%d", host, port)
                raise
            logger.debug("Port %d in use, trying next port", port)
            continue
        if port != configured_port:
            logger.warning(
                "Configured port %d was in use, using port %d instead", configured_port, port
            )
        return port

    raise RuntimeError(
        f"No available port found in range {configured_port}-"
        f"{configured_port + MAX_PORT_ATTEMPTS - 1}"
    )


async def _serve(config: Config, external_stop_event: asyncio.Event | None = None) -> None:
    """Run the server until signalled to stop.

    Args:
        config: Loaded configuration
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are NOT registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()

    logger.debug("Creating web application. Config: %r", config)
    app = _make_app(config)

    runner = web.AppRunner(app)
    await runner.setup()
    port = await _start_site(runner, config.server_bind, config.server_port)
    logger.info("Server started successfully on %s:%d", config.server_bind, port)

    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    await runner.cleanup()
    logger.info("Server shutdown complete")


def start_server(config: Config) -> None:
    """Start the asyncio event loop and HTTP server.

    Blocks until SIGINT/SIGTERM is received.
    """
    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Server interrupted")


async def run_scheduled_once(config: Config, service: CalendarPostService | None = None) -> bool:
    """Day-targeted post for cron-style scheduled runs.

    Returns:
        True if the run succeeded; failures are logged, never raised
    """
    service = service or CalendarPostService.from_config(config)
    try:
        result = await service.check_and_post_day_events()
    except OPERATION_ERRORS:
        logger.exception("Scheduled run failed")
        return False
    finally:
        await close_all_clients()

    logger.info(result.message)
    return result.success
