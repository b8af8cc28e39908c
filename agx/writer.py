"""
AGXB encoder.

Serializes a ParamStore into the AGXB layout. All integers are written in one
byte order (the host's unless overridden) and the file carries an endianness
marker so readers can tell which order that was:

  Header:
    char[4]   magic = "AGXB"
    u32       version = 1
    u32       endianMarker = 0x01020304
    u32       objectType
    u32       timeSteps
    u32       constantParamCount

  Subtype:
    u32       subtypeLen
    char[]    subtype (utf-8, no terminator)

  constantParamCount parameter records, then for each time step:
    u32       timeStepIndex
    u32       paramCount
    paramCount parameter records

  Parameter record:
    u32       nameLen
    char[]    name (utf-8, no terminator)
    u8        isArray
    isArray == 0:  u32 type, u32 valueBytes, u8[valueBytes]
    isArray == 1:  u32 elementType, u64 elementCount, u64 dataBytes, u8[dataBytes]

Payload bytes are copied verbatim and never byte swapped.
"""

import io, struct
from typing import BinaryIO, Optional

from .common  import AGX_MAGIC, AGX_VERSION, AGX_ENDIAN_MARKER, HOST_BYTEORDER, \
                     AGXIOError, byteorder_prefix, file_open_binary
from .store   import Param, ParamStore, Scope
from .printer import cons


_U32_MASK = 0xFFFFFFFF
_U64_MASK = 0xFFFFFFFFFFFFFFFF


class Encoder:
    """
    Writes ParamStores as AGXB streams.

    Args:
        byteorder: "little" or "big"; None means the host's byte order. Only
                   header and record fields follow it, payloads are written
                   as stored.
    """

    def __init__(self, byteorder: Optional[str] = None):
        self.byteorder = byteorder if byteorder is not None else HOST_BYTEORDER
        self._prefix   = byteorder_prefix(self.byteorder)

    def _u32(self, value: int) -> bytes:
        return struct.pack(f"{self._prefix}I", int(value) & _U32_MASK)

    def _u64(self, value: int) -> bytes:
        return struct.pack(f"{self._prefix}Q", int(value) & _U64_MASK)

    def _write_string(self, stream: BinaryIO, s: str) -> int:
        raw = s.encode("utf-8")
        stream.write(self._u32(len(raw)))
        stream.write(raw)
        return 4 + len(raw)

    def _write_param(self, stream: BinaryIO, name: str, param: Param) -> int:
        n = self._write_string(stream, name)

        if param.is_array:
            stream.write(b"\x01")
            stream.write(self._u32(param.element_type))
            stream.write(self._u64(param.element_count))
            stream.write(self._u64(len(param.data)))
            n += 1 + 4 + 8 + 8
        else:
            stream.write(b"\x00")
            stream.write(self._u32(param.type))
            stream.write(self._u32(len(param.data)))
            n += 1 + 4 + 4

        stream.write(param.data)
        return n + len(param.data)

    def _write_scope(self, stream: BinaryIO, scope: Scope) -> int:
        return sum(self._write_param(stream, name, param) for name, param in scope.items())

    def encode(self, store: ParamStore, stream: BinaryIO) -> int:
        """
        Writes store to a binary stream.

        Returns:
            The number of bytes written.
        """
        stream.write(AGX_MAGIC)
        for field in (AGX_VERSION, AGX_ENDIAN_MARKER, store.object_type,
                      store.time_step_count, len(store.constants)):
            stream.write(self._u32(field))
        n = len(AGX_MAGIC) + 5 * 4

        n += self._write_string(stream, store.subtype)
        n += self._write_scope(stream, store.constants)

        for index, scope in enumerate(store.time_steps):
            stream.write(self._u32(index))
            stream.write(self._u32(len(scope)))
            n += 8 + self._write_scope(stream, scope)

        return n

    def encode_bytes(self, store: ParamStore) -> bytes:
        buf = io.BytesIO()
        self.encode(store, buf)
        return buf.getvalue()


def write(store: ParamStore, filepath: str, byteorder: Optional[str] = None) -> int:
    """
    Writes store to filepath as an AGXB file, replacing any existing file.

    Raises:
        AGXIOError: If the file cannot be created or written.

    Returns:
        The number of bytes written.
    """
    encoder = Encoder(byteorder)

    with file_open_binary(filepath, "wb") as f:
        try:
            n = encoder.encode(store, f)
        except OSError as exc:
            raise AGXIOError(f'Failed to write to "{filepath}": {exc}') from exc

    cons.debug(f"Wrote {n} bytes to {filepath} ({len(store.constants)} constant(s), "
               f"{store.time_step_count} time step(s), {encoder.byteorder}-endian).")

    return n


def to_bytes(store: ParamStore, byteorder: Optional[str] = None) -> bytes:
    return Encoder(byteorder).encode_bytes(store)
