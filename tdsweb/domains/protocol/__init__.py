"""Wire protocol for the query service: message types and JSON codec."""

from .codec import decode, encode
from .exceptions import (
    DecodeError,
    MalformedFrameError,
    MissingTypeError,
    NotConnectedError,
    TdswebError,
    UnknownTypeError,
)

__all__ = [
    "DecodeError",
    "MalformedFrameError",
    "MissingTypeError",
    "NotConnectedError",
    "TdswebError",
    "UnknownTypeError",
    "decode",
    "encode",
]
