# server/errors.py
# Error taxonomy for the relay. Every per-message and per-connection error is handled
# where it is raised (logged, isolated); only ListenBindFailure stops the process.


class RelayError(Exception):
    """Base class for all relay errors."""


# --- Framing errors (message dropped, connection unaffected) ---

class MalformedEnvelope(RelayError):
    """A text frame that is not a well-formed MIDI envelope (bad JSON, wrong shape, bad payload)."""


class UnexpectedMessageKind(RelayError):
    """A well-formed envelope whose 'type' discriminant is not the expected one."""

    def __init__(self, kind):
        super().__init__(f"Unexpected message type {kind!r}")
        self.kind = kind


# --- Delivery and transport errors (isolated to one peer) ---

class SendFailure(RelayError):
    """Forwarding one message to one target failed."""

    def __init__(self, target, cause):
        super().__init__(f"Send to peer {target.identity} failed: {cause}")
        self.target = target
        self.cause = cause


class TransportClosed(RelayError):
    """The peer's connection is closed or closing and can no longer be sent to."""

    def __init__(self, peer):
        super().__init__(f"Connection of peer {peer.identity} is closed")
        self.peer = peer


class TransportError(RelayError):
    """The peer's connection failed with a transport-level error."""

    def __init__(self, peer, cause):
        super().__init__(f"Connection of peer {peer.identity} failed: {cause}")
        self.peer = peer
        self.cause = cause


# --- Startup errors (fatal) ---

class ListenBindFailure(RelayError):
    """The server could not bind its listening socket."""

    def __init__(self, host, port):
        super().__init__(f"Could not listen on {host}:{port}")
        self.host = host
        self.port = port
