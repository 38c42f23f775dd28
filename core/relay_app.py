"""
Relay runtime entrypoint.

This module launches the Discord <-> completion relay as an
independent process. It owns:

- event loop creation
- configuration loading
- lifecycle wiring
- orderly startup and shutdown

IMPORTANT:
- Missing configuration is fatal; the process exits non-zero
- A fatal Discord failure stops the process
"""

import asyncio
import signal
import sys

from dotenv import load_dotenv

from services.discord.runtime.supervisor import RelaySupervisor
from shared.config.settings import load_settings
from shared.errors import ConfigError
from shared.logging.logger import get_logger

log = get_logger("core.relay_app")


# ----------------------------------------------------------------------
# MAIN ASYNC ENTRYPOINT
# ----------------------------------------------------------------------

async def main(stop_event: asyncio.Event):
    load_dotenv()

    settings = load_settings()

    log.info("Relay runtime booting")

    supervisor = RelaySupervisor(settings, stop_event)

    # --------------------------------------------------
    # START RELAY RUNTIME
    # --------------------------------------------------
    try:
        await supervisor.start()
        log.info("Relay supervisor started successfully")
    except Exception as e:
        log.error(f"Failed to start relay supervisor: {e}")
        raise

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL
    # --------------------------------------------------
    await stop_event.wait()

    log.info("Relay shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN
    # --------------------------------------------------
    try:
        await supervisor.shutdown()
    except Exception as e:
        log.warning(f"Relay supervisor shutdown error ignored: {e}")

    log.info("Relay runtime stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        log.info("Exiting...")
        loop.call_soon_threadsafe(stop_event.set)

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError as e:
        log.warning(f"Signal handlers not installed: {e}")


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run() -> int:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    stop_event = asyncio.Event()
    _install_signal_handlers(loop, stop_event)

    exit_code = 0

    try:
        loop.run_until_complete(main(stop_event))

    except ConfigError as e:
        log.error(f"Configuration error: {e}")
        exit_code = 1

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received, shutdown initiated")

    except Exception as e:
        log.error(f"Relay runtime failed: {e}")
        exit_code = 1

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        # --------------------------------------------------
        # FINAL LOOP CLEANUP
        # --------------------------------------------------
        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()

    return exit_code


if __name__ == "__main__":
    sys.exit(run())
