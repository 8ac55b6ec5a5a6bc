# server/main.py
# Entry point for the MIDI relay WebSocket server.
# Sets up logging, reads HOST/PORT from the config module and runs the server until interrupted.
# Exits with status 1 if the listening port can't be bound.

import asyncio  # Runs the server's event loop.
import logging  # Process-wide logging configuration.
import sys      # For the exit status.

import config   # Server configuration (HOST, PORT, SSL, limits, DEBUG).
import server   # RelayServer and start_server.
from errors import ListenBindFailure


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    logging.info("Attempting to start MIDI relay from main.py...")
    logging.info(f"Using HOST={config.HOST}, PORT={config.PORT}")
    try:
        asyncio.run(server.start_server(config.HOST, config.PORT))
    except KeyboardInterrupt:
        logging.info("Server stopped manually via KeyboardInterrupt.")
    except ListenBindFailure as e:
        logging.error(f"{e}: {e.__cause__}. Is the port already in use?")
        return 1
    except Exception:
        logging.exception("Server failed to start or crashed in main.py")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
