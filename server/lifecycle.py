# server/lifecycle.py
# Connection lifecycle management: accepts peers into the registry and takes them out again,
# whether the client closed the connection, the transport failed, or sends to it kept failing.
# Every removal path is idempotent, so a peer reaped after a send failure can later be
# "closed" again by its connection handler without side effects.

import asyncio  # For scheduling background socket closes.
import logging  # For connection events and errors.

import config   # For SEND_FAILURE_LIMIT and DEBUG.
from errors import TransportClosed
from peer import Peer, PeerState

# Close code sent to a peer dropped because sends to it kept failing (1011 = internal error).
REAP_CLOSE_CODE = 1011


class ConnectionLifecycle:

    def __init__(self, registry, send_failure_limit=None):
        self._registry = registry
        if send_failure_limit is None:
            send_failure_limit = config.SEND_FAILURE_LIMIT
        self._send_failure_limit = send_failure_limit
        # Background close tasks; referenced here so they aren't garbage collected mid-flight.
        self._closing = set()

    def accept(self, websocket, identity=None):
        """
        Creates a Peer for a newly accepted connection, registers it and starts its writer.

        Args:
            websocket: The accepted WebSocket connection.
            identity (str, optional): Identity to try first. A random one is used if omitted.

        Returns:
            Peer: The new peer, registered, OPEN and eligible as a broadcast source and target.
        """
        peer = Peer(websocket, identity)
        # The registry logs and refuses a duplicate; the peer is only started once it is registered.
        while not self._registry.add(peer):
            peer = Peer(websocket)
        peer.start()
        logging.info(f"Client connected: peer {peer.identity} from {peer.remote_address}. Total clients: {len(self._registry)}")
        return peer

    def close(self, peer):
        """
        Handles the transport reporting that the peer's connection closed.

        Returns:
            bool: True if this call removed the peer from the registry.
        """
        removed = self._release(peer)
        if removed:
            logging.info(f"Client disconnected: peer {peer.identity} ({peer.remote_address}). Total clients: {len(self._registry)}")
        return removed

    def fail(self, peer, error):
        """
        Handles a transport error on the peer's connection. The error is logged and contained here.

        Returns:
            bool: True if this call removed the peer from the registry.
        """
        logging.warning(f"Connection error on peer {peer.identity} ({peer.remote_address}): {error}")
        removed = self._release(peer)
        if removed:
            logging.info(f"Client removed after error: peer {peer.identity}. Total clients: {len(self._registry)}")
        return removed

    def record_delivery(self, peer):
        """Notes a successful send to `peer`, clearing its consecutive failure count."""
        peer.send_failures = 0

    def report_send_failure(self, failure):
        """
        Handles one failed send. A closed transport drops the target immediately; other errors
        drop it once SEND_FAILURE_LIMIT consecutive sends have failed. Dropping does not wait
        for the socket to finish closing.

        Args:
            failure (SendFailure): The failed delivery.
        """
        target = failure.target
        if target.state is not PeerState.OPEN:
            return
        if isinstance(failure.cause, TransportClosed):
            self._reap(target, "connection closed during send")
            return
        target.send_failures += 1
        if target.send_failures >= self._send_failure_limit:
            self._reap(target, f"{target.send_failures} consecutive send failures")

    def _reap(self, peer, reason):
        peer.state = PeerState.CLOSING
        logging.warning(f"Dropping peer {peer.identity} ({peer.remote_address}): {reason}")
        self._release(peer)
        logging.info(f"Total clients: {len(self._registry)}")
        task = asyncio.create_task(self._close_transport(peer, reason))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close_transport(self, peer, reason):
        try:
            await peer.websocket.close(code=REAP_CLOSE_CODE, reason=reason[:120])
        except Exception as e:
            # The transport is already broken; the peer is out of the registry either way.
            logging.warning(f"Error closing connection of dropped peer {peer.identity}: {e}")

    def _release(self, peer):
        removed = self._registry.remove(peer)
        peer.stop()
        return removed
