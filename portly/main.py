import asyncio
import logging
import signal
import sys

from portly.config.logging_config import setup_logging
from portly.errors import PortlyError
from portly.services.lifecycle import PortLifecycle
from portly.settings import load_settings

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def run_main():
    """Entry point for the console script."""
    sys.exit(asyncio.run(main()))


async def main() -> int:
    try:
        settings = load_settings()
        setup_logging(settings)
    except PortlyError as e:
        setup_logging()
        logger.error(f"Portly {e.stage} failed: {e}")
        return 1

    lifecycle = PortLifecycle(settings)

    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, lifecycle.request_shutdown)

    try:
        await lifecycle.run()
    except PortlyError as e:
        logger.error(f"Portly {e.stage} failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Portly execution failed: {e}")
        return 1
    finally:
        for sig in SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)

    return 0


if __name__ == "__main__":
    run_main()
