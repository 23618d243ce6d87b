"""Entry payload encoding.

An entry on disk is an absolute expiry timestamp followed by the serialized
value. Two header layouts are supported:

- self-describing (default): ``b"<digits>:" + body``. The header carries
  its own length, so timestamps of any size are representable.
- fixed-width: ``b"<10 digits>" + body``. Zero-padded to exactly ten
  ASCII digits; compatible with caches written by older tooling, and
  limited to expiries up to FAR_FUTURE (year 2286).
"""

import json
import pickle
from typing import Any, Protocol

from tiercache.consts import FAR_FUTURE, FIXED_HEADER_WIDTH, HEADER_SEPARATOR
from tiercache.exceptions import CorruptPayloadError, DeserializationError

# Longest header scanned for a separator before giving up
_MAX_HEADER_DIGITS = 20


class Serializer(Protocol):
    """Encodes arbitrary values to bytes and back."""

    def dumps(self, value: Any) -> bytes: ...

    def loads(self, data: bytes) -> Any: ...


class PickleSerializer:
    """Serializer for arbitrary Python values."""

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        self.protocol = protocol

    def dumps(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=self.protocol)

    def loads(self, data: bytes) -> Any:
        return pickle.loads(data)


class JsonSerializer:
    """Serializer for JSON-compatible values; entries stay human-readable."""

    def dumps(self, value: Any) -> bytes:
        return json.dumps(value, default=str).encode("utf-8")

    def loads(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


class PayloadCodec:
    """Packs a value and its absolute expiry into a single byte payload."""

    def __init__(self, serializer: Serializer | None = None, fixed_width: bool = False):
        """Initialize PayloadCodec.

        Args:
            serializer: Value serializer. Defaults to PickleSerializer.
            fixed_width: Use the 10-digit fixed-width header instead of the
                self-describing one.
        """
        self.serializer = serializer or PickleSerializer()
        self.fixed_width = fixed_width

    def encode(self, value: Any, expiry: int) -> bytes:
        """Encode a value with its absolute expiry (Unix seconds)."""
        expiry = int(expiry)
        if expiry < 0:
            msg = f"Expiry must be non-negative, got {expiry}"
            raise ValueError(msg)
        body = self.serializer.dumps(value)
        if self.fixed_width:
            if expiry > FAR_FUTURE:
                msg = f"Expiry {expiry} does not fit a {FIXED_HEADER_WIDTH}-digit header"
                raise ValueError(msg)
            return f"{expiry:0{FIXED_HEADER_WIDTH}d}".encode("ascii") + body
        return str(expiry).encode("ascii") + HEADER_SEPARATOR + body

    def decode_expiry(self, data: bytes) -> tuple[int, int]:
        """Parse the header only.

        Returns:
            Tuple of (expiry, offset of the value segment).

        Raises:
            CorruptPayloadError: If the header is missing or not numeric.
        """
        if self.fixed_width:
            if len(data) < FIXED_HEADER_WIDTH:
                raise CorruptPayloadError(
                    "Payload shorter than expiry header", context={"length": len(data)}
                )
            header = data[:FIXED_HEADER_WIDTH]
            offset = FIXED_HEADER_WIDTH
        else:
            end = data.find(HEADER_SEPARATOR, 0, _MAX_HEADER_DIGITS + 1)
            if end <= 0:
                raise CorruptPayloadError(
                    "Payload has no expiry header", context={"length": len(data)}
                )
            header = data[:end]
            offset = end + len(HEADER_SEPARATOR)

        if not header.isdigit():
            raise CorruptPayloadError("Expiry header is not numeric", context={"header": header})
        return int(header), offset

    def decode(self, data: bytes) -> tuple[Any, int]:
        """Decode a payload into (value, expiry).

        Raises:
            CorruptPayloadError: If the header is malformed.
            DeserializationError: If the value segment cannot be deserialized.
        """
        expiry, offset = self.decode_expiry(data)
        try:
            value = self.serializer.loads(data[offset:])
        except Exception as e:
            raise DeserializationError(f"Failed to deserialize cached value: {e}") from e
        return value, expiry
