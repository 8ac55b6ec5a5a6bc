# server/config.py
# This file centralizes configuration settings for the MIDI relay WebSocket server.
# Every setting has a default here and can be overridden through an environment variable,
# which is how hosting platforms (Render, Glitch, containers) hand settings to the process.

import logging  # For warning about unusable environment overrides.
import os       # For reading environment variables and building file paths.


def _env_int(name, default):
    """Reads an integer environment variable, falling back to `default` if unset or invalid."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logging.warning(f"Ignoring {name}={value!r}: not an integer. Using default {default}.")
        return default


def _env_flag(name, default):
    """Reads a boolean environment variable ('1', 'true', 'yes', 'on' are truthy)."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Network Configuration ---

# HOST: The IP address the WebSocket server should listen on.
# - '0.0.0.0': Listen on all available network interfaces (needed when deployed behind a public host).
# - '127.0.0.1': Listen only on the local machine.
HOST = os.environ.get("HOST", "0.0.0.0")

# PORT: The TCP port number the WebSocket server should listen on.
# Hosting platforms assign this through the PORT environment variable; 8080 is the local fallback.
PORT = _env_int("PORT", 8080)

# --- SSL Configuration ---
# Most deployments terminate TLS at the platform's proxy, so WSS is off by default.

# CERT_DIR: Default directory for the certificate and key (server/ -> ../certs/).
CERT_DIR = os.path.join(os.path.dirname(__file__), '..', 'certs')

# CERT_FILE / KEY_FILE: Certificate chain and private key used when ENABLE_SSL is True.
CERT_FILE = os.environ.get("MIDI_RELAY_CERT_FILE", os.path.join(CERT_DIR, 'cert.pem'))
KEY_FILE = os.environ.get("MIDI_RELAY_KEY_FILE", os.path.join(CERT_DIR, 'key.pem'))

# ENABLE_SSL: Serve WSS directly from this process. Falls back to WS if the files can't be loaded.
ENABLE_SSL = _env_flag("MIDI_RELAY_ENABLE_SSL", False)

# --- Relay Configuration ---

# MAX_MESSAGE_SIZE: Largest inbound WebSocket message accepted, in bytes.
# A MIDI event is a handful of bytes; the limit only has to fit SysEx dumps and the JSON overhead.
MAX_MESSAGE_SIZE = _env_int("MIDI_RELAY_MAX_MESSAGE_SIZE", 64 * 1024)

# SEND_FAILURE_LIMIT: Consecutive failed sends to one peer before it is dropped from the relay.
# A send to an already closed connection drops the peer immediately regardless of this value.
SEND_FAILURE_LIMIT = _env_int("MIDI_RELAY_SEND_FAILURE_LIMIT", 3)

# --- Debugging Configuration ---

# DEBUG: Verbose relay logging.
# - True: log every relayed frame (kind, size, text content) and each fan-out result.
# - False: only connections, disconnections, dropped messages, failures and errors are logged.
DEBUG = _env_flag("MIDI_RELAY_DEBUG", False)
