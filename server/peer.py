# server/peer.py
# A Peer wraps one client's WebSocket connection with the state the relay needs:
# - A unique identity assigned when the connection is accepted.
# - A liveness state (ACCEPTED -> OPEN -> CLOSING -> CLOSED).
# - An outbound FIFO queue drained by a dedicated writer task, so sending to one slow client
#   never holds up sends to the others, and each client receives frames in the order they were queued.

import asyncio  # For the outbox queue, the writer task and per-send futures.
import enum     # For the liveness state.
import logging  # For writer task diagnostics.
import uuid     # For peer identities.

import websockets              # For the ConnectionClosed exception family.
from websockets.protocol import State as WebsocketState

import config   # For the DEBUG flag.
from errors import TransportClosed, TransportError


class PeerState(enum.Enum):
    ACCEPTED = "accepted"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class Peer:

    def __init__(self, websocket, identity=None):
        self.identity = identity or uuid.uuid4().hex
        self.websocket = websocket
        self.remote_address = getattr(websocket, "remote_address", None)
        self.state = PeerState.ACCEPTED
        # Consecutive failed sends; reset on every successful send.
        self.send_failures = 0
        self._outbox = asyncio.Queue()
        self._writer = None

    def __repr__(self):
        return f"<Peer {self.identity} {self.remote_address} {self.state.value}>"

    @property
    def is_open(self):
        """True if the relay considers this peer live and its transport is still open."""
        return self.state is PeerState.OPEN and self.websocket.state is WebsocketState.OPEN

    def start(self):
        """Marks the peer OPEN and starts its writer task. Must run inside the event loop."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain_outbox(), name=f"peer-{self.identity}-writer")
        self.state = PeerState.OPEN

    def enqueue(self, raw):
        """
        Queues one frame for delivery to this peer without waiting.

        Args:
            raw (str | bytes): Frame to send, unmodified.

        Returns:
            asyncio.Future: Resolves to None once the frame is handed to the transport, or fails
            with TransportClosed / TransportError.
        """
        delivery = asyncio.get_running_loop().create_future()
        if self.state is not PeerState.OPEN:
            delivery.set_exception(TransportClosed(self))
            return delivery
        self._outbox.put_nowait((raw, delivery))
        return delivery

    @property
    def pending(self):
        """Number of frames queued but not yet handed to the transport."""
        return self._outbox.qsize()

    async def _drain_outbox(self):
        while True:
            raw, delivery = await self._outbox.get()
            if delivery.done():
                continue
            try:
                await self.websocket.send(raw)
            except asyncio.CancelledError:
                if not delivery.done():
                    delivery.set_exception(TransportClosed(self))
                raise
            except websockets.exceptions.ConnectionClosed:
                delivery.set_exception(TransportClosed(self))
            except Exception as e:
                delivery.set_exception(TransportError(self, e))
            else:
                delivery.set_result(None)
                if config.DEBUG:
                    logging.info(f"Delivered frame to peer {self.identity} ({self.remote_address})")

    def stop(self):
        """
        Marks the peer CLOSED, stops its writer and fails any frames still queued.
        Safe to call more than once.
        """
        self.state = PeerState.CLOSED
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
        while not self._outbox.empty():
            _, delivery = self._outbox.get_nowait()
            if not delivery.done():
                delivery.set_exception(TransportClosed(self))
