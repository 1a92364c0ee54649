"""Payload codec: msgpack, gzip and base64.

Stored values are base64 text of (optionally gzip-compressed) msgpack data,
the same format written by the other services sharing the store.
"""

import base64
import binascii
import gzip
import zlib

import msgpack
import structlog

from api_cache.exceptions import DecodeError, SerializationError
from api_cache.models import Payload

logger = structlog.get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
GZIP_LEVEL = 6


class PayloadCodec:
    """
    Encode payloads for storage and decode them on read.

    Decoding sniffs the gzip header instead of trusting the ``compress``
    setting, so entries written with compression on and off can be read
    from the same store. A msgpack document can never start with the gzip
    magic, so the check is unambiguous.

    Attributes:
        compress: Whether encode() gzips the serialized payload
    """

    def __init__(self, compress: bool = True) -> None:
        self.compress = compress

    def encode(self, payload: Payload) -> str:
        """
        Serialize, optionally compress, and base64-encode a payload.

        Args:
            payload: Value to encode (bytes, str, numbers, lists, dicts, None)

        Returns:
            Base64 text suitable for storing as a string value

        Raises:
            SerializationError: If the payload contains unsupported types

        Example:
            >>> codec = PayloadCodec()
            >>> codec.decode(codec.encode(b'{"id": 1}'))
            b'{"id": 1}'
        """
        try:
            packed = msgpack.packb(payload, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as e:
            raise SerializationError(str(e)) from e

        if self.compress:
            # mtime=0 keeps the output deterministic for identical payloads
            packed = gzip.compress(packed, compresslevel=GZIP_LEVEL, mtime=0)

        return base64.b64encode(packed).decode("ascii")

    def decode(self, stored: str | bytes) -> Payload:
        """
        Reverse encode(): base64-decode, decompress if gzipped, unpack.

        Args:
            stored: Text (or bytes) previously produced by encode()

        Returns:
            The original payload

        Raises:
            DecodeError: On malformed base64, corrupt gzip data or malformed msgpack
        """
        try:
            data = base64.b64decode(stored, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 data: {e}") from e

        if data.startswith(GZIP_MAGIC):
            try:
                data = gzip.decompress(data)
            except (OSError, EOFError, zlib.error) as e:
                raise DecodeError(f"Corrupt gzip stream: {e}") from e

        try:
            return msgpack.unpackb(data, raw=False, strict_map_key=False)
        except (ValueError, TypeError, msgpack.UnpackException) as e:
            raise DecodeError(f"Invalid msgpack data: {e}") from e


def encode(payload: Payload, compress: bool = True) -> str:
    """Encode ``payload`` with a one-off PayloadCodec."""
    return PayloadCodec(compress=compress).encode(payload)


def decode(stored: str | bytes) -> Payload:
    """Decode a stored value; compression is detected from the data."""
    return PayloadCodec().decode(stored)
