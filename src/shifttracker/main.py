#!/usr/bin/env python3
"""Main entrypoint for the shifttracker service (tracker + web API)."""

import logging
import signal
import sys

from shifttracker.config import Config
from shifttracker.tracker import ShiftTracker
from shifttracker.utils.logging import setup_console_logging
from shifttracker.web.app import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point."""
    try:
        config = Config("config.json")
    except (OSError, ValueError) as e:
        setup_console_logging("INFO")
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    setup_console_logging(config.log.get("level", "INFO"))
    logger.info("Starting shifttracker...")

    is_valid, errors = config.validate()
    if not is_valid:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        sys.exit(1)

    if not config.remote_configured:
        logger.warning("Remote backend not configured, running local-only")

    tracker = ShiftTracker(config)
    tracker.start()

    app = create_app(tracker)
    port = config.web.get("port", 8080)

    logger.info(f"Starting web API on port {port}...")

    def signal_handler(signum, frame) -> None:  # type: ignore
        """Handle shutdown signals.

        Args:
            signum: Signal number
            frame: Stack frame
        """
        logger.info("Shutdown signal received, stopping tracker...")
        tracker.stop()
        logger.info("Goodbye!")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run(
            host="0.0.0.0",  # nosec S104 - intended for Docker container
            port=port,
            debug=False,
            use_reloader=False,
            threaded=True,
        )
    except OSError as e:
        logger.error(f"Failed to start web service: {e}")
        tracker.stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
