import os
import logging
import sys
import traceback

import uvicorn

from datasprint.exceptions import ConfigurationError

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("launcher")

DEFAULT_PORT = 5001


def build_relay_app():
    """Build the object relay ASGI app from environment settings."""
    # Imported lazily so a missing FastAPI install fails inside the bootstrap log.
    from datasprint.relay.server import create_app
    return create_app()


def launch_asgi_app(app, port: int):
    """Launch the provided ASGI app with uvicorn."""
    logger.info(f"Starting uvicorn ASGI server on 0.0.0.0:{port} ...")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")


def main():
    port = int(os.environ.get("PORT", str(DEFAULT_PORT)))
    logger.info(f"=== BOOTSTRAP === object relay PORT={port}")

    try:
        app = build_relay_app()
    except ConfigurationError as e:
        logger.error(f"Relay is not configured: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"CRITICAL FAILURE BUILDING RELAY: {e}")
        traceback.print_exc()
        sys.exit(1)

    launch_asgi_app(app, port)


if __name__ == "__main__":
    main()
