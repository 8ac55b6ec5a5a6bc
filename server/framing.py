# server/framing.py
# Wire representation of relayed MIDI events.
# Two frame kinds reach the server:
# - Text frames holding a JSON envelope: {"type": "midi", "payload": [status, data1, data2]}
# - Binary frames holding the raw MIDI bytes.
# Frames are classified once at ingress into an EventMessage. The relay itself always forwards
# the original frame (EventMessage.raw); decoding exists for validation and logging.

import dataclasses  # For the EventMessage record.
import enum         # For the encoding tag.
import json         # For parsing and producing text envelopes.

from errors import MalformedEnvelope, UnexpectedMessageKind

# Discriminant value identifying an event-carrying envelope.
MIDI_MESSAGE_TYPE = "midi"


class Encoding(enum.Enum):
    TEXT_ENVELOPE = "text"
    BINARY = "binary"


@dataclasses.dataclass(frozen=True)
class EventMessage:
    """One inbound event: its payload bytes, how it arrived, and the untouched inbound frame."""
    payload: bytes
    encoding: Encoding
    raw: object  # str for TEXT_ENVELOPE, bytes for BINARY

    def describe(self):
        """Short human-readable summary for log lines."""
        if self.encoding is Encoding.BINARY:
            return f"BINARY frame, {len(self.payload)} bytes"
        return f"TEXT frame: {self.raw}"


def _is_byte_value(value):
    # bool is an int subclass; true/false in the payload are not MIDI bytes
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 255


def decode(raw):
    """
    Classifies an inbound WebSocket frame.

    Args:
        raw (str | bytes | bytearray | memoryview): The frame exactly as received.

    Returns:
        EventMessage: The decoded event. `raw` is preserved as received.

    Raises:
        MalformedEnvelope: A text frame that is not JSON, not an object, or lacks a valid payload.
        UnexpectedMessageKind: A JSON object whose 'type' is not "midi".
    """
    if isinstance(raw, (bytes, bytearray, memoryview)):
        # Binary frames are opaque: the payload is the frame itself.
        return EventMessage(payload=bytes(raw), encoding=Encoding.BINARY, raw=raw)

    if not isinstance(raw, str):
        raise MalformedEnvelope(f"Unsupported frame type {type(raw).__name__}")

    try:
        envelope = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedEnvelope(f"Not JSON: {e}") from e
    except (ValueError, RecursionError) as e:
        # Valid JSON syntax the decoder still refuses: nesting too deep, oversized integer literals.
        raise MalformedEnvelope(f"Undecodable JSON: {e}") from e

    if not isinstance(envelope, dict):
        raise MalformedEnvelope(f"Envelope is a {type(envelope).__name__}, not an object")

    kind = envelope.get("type")
    if kind != MIDI_MESSAGE_TYPE:
        raise UnexpectedMessageKind(kind)

    payload = envelope.get("payload")
    if not isinstance(payload, list):
        raise MalformedEnvelope("Missing or non-list 'payload'")
    if not all(_is_byte_value(value) for value in payload):
        raise MalformedEnvelope("'payload' must only contain integers between 0 and 255")

    return EventMessage(payload=bytes(payload), encoding=Encoding.TEXT_ENVELOPE, raw=raw)


def encode(payload, encoding):
    """
    Builds a wire frame for `payload`. Inverse of decode().

    The relay forwards inbound frames unmodified, so this is only needed when a frame has to be
    produced from scratch (tests, tools, synthetic messages).

    Args:
        payload (bytes | Iterable[int]): MIDI bytes.
        encoding (Encoding): Frame kind to produce.

    Returns:
        str | bytes: A compact JSON envelope for TEXT_ENVELOPE, raw bytes for BINARY.
    """
    data = bytes(payload)
    if encoding is Encoding.BINARY:
        return data
    # Compact separators match what browsers produce with JSON.stringify.
    return json.dumps({"type": MIDI_MESSAGE_TYPE, "payload": list(data)}, separators=(",", ":"))
