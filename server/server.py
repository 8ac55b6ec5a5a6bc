# server/server.py
# This file wires the relay components to the WebSocket server.
# Responsibilities include:
# - Creating the connection registry, lifecycle manager and broadcast relay for one server instance.
# - Running the per-connection handler: accept, relay every inbound frame, clean up on close or error.
# - Setting up the SSL context for Secure WebSockets (WSS) if configured.
# - Binding the listening socket, turning a bind failure into ListenBindFailure.

import asyncio     # For the event loop and keeping the server alive.
import logging     # For logging server events, warnings, and errors.
import ssl         # For creating SSL contexts for WSS.

import websockets  # The WebSocket library used for the server implementation.

import config      # Imports server configuration (HOST, PORT, SSL settings, limits, DEBUG).
from errors import ListenBindFailure, TransportError
from lifecycle import ConnectionLifecycle
from registry import ConnectionRegistry
from relay import BroadcastRelay


class RelayServer:
    """
    One relay instance: a registry shared by every connection handler of this server.

    Args:
        registry (ConnectionRegistry, optional): Registry to use. A new one is created if omitted.
        send_failure_limit (int, optional): Overrides config.SEND_FAILURE_LIMIT.
    """

    def __init__(self, registry=None, send_failure_limit=None):
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.lifecycle = ConnectionLifecycle(self.registry, send_failure_limit)
        self.relay = BroadcastRelay(self.registry, self.lifecycle)

    async def connection_handler(self, websocket):
        """
        Handles one client connection from accept to close.

        Every inbound frame (text or binary) is handed to the relay, which forwards it to all
        other peers without blocking this loop. Errors on this connection are contained here.

        Args:
            websocket (websockets.asyncio.server.ServerConnection): The client's connection.
        """
        peer = self.lifecycle.accept(websocket)
        try:
            # Iteration ends normally when the client closes cleanly.
            async for message in websocket:
                self.relay.dispatch(peer, message)
        except websockets.exceptions.ConnectionClosedError as e:
            # Abrupt disconnects (network drop, tab killed) land here.
            self.lifecycle.fail(peer, TransportError(peer, e))
        except Exception as e:
            logging.exception(f"An unexpected error occurred handling peer {peer.identity} ({peer.remote_address})")
            self.lifecycle.fail(peer, TransportError(peer, e))
        finally:
            # No-op if an error path or a reap already removed the peer.
            self.lifecycle.close(peer)

    async def start(self, host, port, ssl_context=None, max_size=None):
        """
        Binds the listening socket and starts accepting connections.

        Args:
            host (str): Address to bind.
            port (int): Port to bind; 0 picks a free port.
            ssl_context (ssl.SSLContext, optional): Serve WSS with this context.
            max_size (int, optional): Largest inbound message in bytes. Defaults to config.MAX_MESSAGE_SIZE.

        Returns:
            websockets.asyncio.server.Server: The running server.

        Raises:
            ListenBindFailure: The socket could not be bound (port in use, permission denied, bad address).
        """
        try:
            return await websockets.serve(
                self.connection_handler,
                host,
                port,
                ssl=ssl_context,
                max_size=max_size or config.MAX_MESSAGE_SIZE,
            )
        except OSError as e:
            raise ListenBindFailure(host, port) from e


def create_ssl_context(cert_file, key_file):
    """
    Builds a TLS server context from a certificate chain and private key.

    Returns:
        ssl.SSLContext | None: The context, or None if the files can't be loaded (the server then
        falls back to unencrypted WS).
    """
    logging.info(f"Attempting to load SSL cert: {cert_file}")
    logging.info(f"Attempting to load SSL key: {key_file}")
    try:
        ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        ssl_context.load_cert_chain(cert_file, key_file)
    except FileNotFoundError:
        logging.error(f"SSL Error: Certificate or Key file not found (Cert: '{cert_file}', Key: '{key_file}'). Disabling SSL, falling back to WS.")
        return None
    except (ssl.SSLError, OSError):
        logging.exception("SSL Error: Failed to create SSL context. Disabling SSL, falling back to WS.")
        return None
    logging.info("SSL context created successfully. Server will use WSS.")
    return ssl_context


# --- Server Startup Function ---
async def start_server(host, port):
    """
    Starts the relay on `host:port` and serves until the process is stopped.

    Raises:
        ListenBindFailure: The port could not be bound. Nothing is served in that case.
    """
    ssl_context = None
    if config.ENABLE_SSL:
        ssl_context = create_ssl_context(config.CERT_FILE, config.KEY_FILE)

    effective_protocol = "wss" if ssl_context else "ws"
    logging.info(f"Starting MIDI relay on {effective_protocol}://{host}:{port}")
    logging.info(f"Maximum WebSocket message size set to: {config.MAX_MESSAGE_SIZE} bytes")
    logging.info(f"Peers are dropped after {config.SEND_FAILURE_LIMIT} consecutive send failures")
    logging.info(f"Server Debug Logging: {'ENABLED' if config.DEBUG else 'DISABLED'}")

    relay_server = RelayServer()
    server_instance = await relay_server.start(host, port, ssl_context=ssl_context)
    async with server_instance:
        logging.info("The server is ready and listening.")
        # Runs until the process is interrupted (e.g., Ctrl+C).
        await asyncio.Future()
