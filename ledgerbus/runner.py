"""Entry point for a node process: settings -> logging -> runtime -> dispatch loop -> teardown."""

import asyncio
import logging
import os
import signal
from pathlib import Path

from dotenv import load_dotenv

from ledgerbus.events.topics import EventName
from ledgerbus.logging_config import setup_logging
from ledgerbus.rpc.services import ReferenceHostServices
from ledgerbus.runtime import init_runtime, shutdown_runtime
from ledgerbus.settings import load_settings

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


def _config_dir() -> Path | None:
    value = os.environ.get("LEDGERBUS_CONFIG_DIR")
    return Path(value) if value else None


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support; KeyboardInterrupt still works
            pass


async def main_async() -> None:
    """Bootstrap the runtime, announce readiness, run until signalled, shut down."""
    settings = load_settings(_config_dir())
    log_path = setup_logging(_PROJECT_ROOT, settings)
    runtime = init_runtime(settings)
    loop = asyncio.get_running_loop()
    runtime.bus.attach(loop)
    services = ReferenceHostServices(runtime.bus)
    services.register()
    stop = asyncio.Event()
    _install_signal_handlers(loop, stop)
    runtime.bus.publish(EventName.SYSTEM_READY, {})
    logger.info("Node event runtime ready (logging to %s)", log_path)
    reason = "signal"
    try:
        await stop.wait()
    except asyncio.CancelledError:
        reason = "cancelled"
    finally:
        runtime.bus.publish(EventName.SYSTEM_SHUTDOWN, {"reason": reason})
        services.unregister()
        shutdown_runtime()


def main() -> None:
    """Synchronous entry for the node process."""
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        pass  # runtime already shut down in main_async's finally block


__all__ = ["main"]
