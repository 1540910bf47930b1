"""QTI 1.2 package encoding and decoding."""

from itembank.qti.decoder import decode, decode_async
from itembank.qti.encoder import encode, encode_async

__all__ = [
    "encode",
    "encode_async",
    "decode",
    "decode_async",
]
