"""
Streaming reader for AGXB files.

The reader walks the file forward, one record at a time, and never loads
more than one record's name and payload at once. Decoded records are exposed
through a single ParamView owned by the reader:

    with Reader("dump.agxb") as r:
        r.reset_constants()
        while r.next_constant() == 1:
            print(r.view.name, r.view.data_bytes)

        r.reset_time_steps()
        while True:
            status, index, count = r.begin_next_time_step()
            if status != 1:
                break
            while r.next_time_step_param() == 1:
                keep = r.view.copy()   # copy now if you need it later

The memoryviews in r.view point into the reader's internal buffer; the next
decode call overwrites them. Decode calls return 1 (record produced),
0 (region exhausted) or -1 (malformed or truncated input). After -1 the
reader is latched in the ERROR state and every further decode call returns
-1.

Header and record fields are converted to the host's byte order using the
endianness marker. Payload bytes are returned exactly as stored.
"""

import os, struct, warnings
from dataclasses import dataclass
from enum import Enum, auto
from typing import BinaryIO, Iterator, Optional, Tuple, Union

from .common    import AGX_MAGIC, AGX_VERSION, AGX_ENDIAN_MARKER, HOST_BYTEORDER, \
                       AGXFormatError, byteorder_prefix, opposite_byteorder, file_open_binary
from .datatypes import REGISTRY, DataType, TypeRegistry
from .store     import Param, ParamStore
from .printer   import cons


INITIAL_BUFFER_SIZE = 4096


class ReaderState(Enum):
    UNOPENED    = auto()
    HEADER_READ = auto()
    CONSTANTS   = auto()
    TIME_STEPS  = auto()
    DONE        = auto()
    ERROR       = auto()


@dataclass(frozen=True)
class Header:
    """Decoded header fields, in host byte order."""
    version:              int
    object_type:          int
    time_steps:           int
    constant_param_count: int
    endian_marker:        int
    host_little_endian:   bool
    file_little_endian:   bool
    need_byte_swap:       bool


class ParamView:
    """
    The reader's view of the record decoded last.

    name_bytes and data are read-only memoryviews into the reader's buffer.
    They are only meaningful until the next decode call on the same reader.
    """

    __slots__ = ("name_bytes", "is_array", "type", "element_type", "element_count", "data")

    def __init__(self):
        self.clear()

    def clear(self) -> None:
        self.name_bytes:    memoryview = memoryview(b"")
        self.is_array:      bool       = False
        self.type:          int        = DataType.UNKNOWN
        self.element_type:  int        = DataType.UNKNOWN
        self.element_count: int        = 0
        self.data:          memoryview = memoryview(b"")

    @property
    def name(self) -> str:
        return self.name_bytes.tobytes().decode("utf-8", errors="replace")

    @property
    def name_length(self) -> int:
        return len(self.name_bytes)

    @property
    def data_bytes(self) -> int:
        return len(self.data)

    def copy(self) -> Param:
        """Returns an owned copy of the record."""
        if self.is_array:
            return Param.array(self.element_type, self.element_count, self.data.tobytes())
        return Param.scalar(self.type, self.data.tobytes())

    def __repr__(self) -> str:
        if self.is_array:
            return (f"ParamView(name={self.name!r}, element_type={self.element_type}, "
                    f"element_count={self.element_count}, data_bytes={self.data_bytes})")
        return f"ParamView(name={self.name!r}, type={self.type}, data_bytes={self.data_bytes})"


class Reader:
    """
    Forward-only AGXB decoder.

    Args:
        source:         A path, or a readable and seekable binary stream
                        positioned at the start of an AGXB blob. Streams
                        are not closed by the reader.
        registry:       Type registry used by read_store().
        host_byteorder: Byte order to treat as native; None means the
                        actual host's.

    Raises:
        AGXIOError:     If source is a path that cannot be opened.
        AGXFormatError: If the magic, header or endianness marker is bad.
    """

    def __init__(self, source: Union[str, os.PathLike, BinaryIO],
                 registry: Optional[TypeRegistry] = None,
                 host_byteorder: Optional[str] = None):
        self.registry = registry if registry is not None else REGISTRY
        self.view     = ParamView()

        self._state          = ReaderState.UNOPENED
        self._host_byteorder = host_byteorder if host_byteorder is not None else HOST_BYTEORDER
        self._buffer         = bytearray(INITIAL_BUFFER_SIZE)
        self._pending_error  = False

        if isinstance(source, (str, os.PathLike)):
            self._stream     = file_open_binary(source, "rb")
            self._owns_stream = True
        else:
            self._stream     = source
            self._owns_stream = False

        try:
            self._base = self._stream.tell()
            self._size = self._stream.seek(0, os.SEEK_END) - self._base
            self._stream.seek(self._base)
            self._pos  = 0

            self._read_header()
        except (AGXFormatError, OSError) as exc:
            self.close()
            if isinstance(exc, AGXFormatError):
                raise
            raise AGXFormatError(f"Failed to read AGXB header: {exc}") from exc

    # === lifecycle ===

    def close(self) -> None:
        if self._owns_stream and self._stream is not None:
            self._stream.close()
        self._stream = None
        self._state  = ReaderState.ERROR
        self.view.clear()

    def __enter__(self) -> "Reader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def state(self) -> ReaderState:
        return self._state

    # === low level I/O ===

    def _remaining(self) -> int:
        return self._size - self._pos

    def _read_exact(self, n: int) -> Optional[bytes]:
        if n > self._remaining():
            return None

        data = self._stream.read(n)
        if len(data) != n:
            return None

        self._pos += n
        return data

    def _reserve(self, nbytes: int, keep: int) -> None:
        # Grow by replacing the buffer: callers may still hold views into the
        # old one, which rules out resizing it in place.
        if nbytes <= len(self._buffer):
            return

        buffer = bytearray(max(nbytes, 2 * len(self._buffer)))
        buffer[:keep] = self._buffer[:keep]
        self._buffer = buffer

    def _read_into_buffer(self, offset: int, n: int) -> bool:
        if n > self._remaining():
            return False

        self._reserve(offset + n, keep=offset)

        with memoryview(self._buffer) as mv:
            got = 0
            while got < n:
                k = self._stream.readinto(mv[offset + got:offset + n])
                if not k:
                    return False
                got += k

        self._pos += n
        return True

    def _skip(self, n: int) -> bool:
        if n > self._remaining():
            return False

        self._stream.seek(n, os.SEEK_CUR)
        self._pos += n
        return True

    def _seek(self, pos: int) -> None:
        if pos != self._pos:
            self._stream.seek(self._base + pos)
            self._pos = pos

    def _unpack(self, fmt: str, raw: bytes) -> tuple:
        return struct.unpack(f"{self._prefix}{fmt}", raw)

    def _fail(self) -> int:
        self._state = ReaderState.ERROR
        self.view.clear()
        return -1

    # === header ===

    def _read_header(self) -> None:
        magic = self._read_exact(len(AGX_MAGIC))
        if magic is None:
            raise AGXFormatError("Failed to read magic bytes.")
        if magic != AGX_MAGIC:
            raise AGXFormatError("Not an AGXB file (bad magic).")

        raw = self._read_exact(5 * 4)
        if raw is None:
            raise AGXFormatError("Incomplete header.")

        native  = byteorder_prefix(self._host_byteorder)
        swapped = byteorder_prefix(opposite_byteorder(self._host_byteorder))

        (marker,) = struct.unpack_from(f"{native}I", raw, 4)
        if marker == AGX_ENDIAN_MARKER:
            need_swap = False
            self._prefix = native
        elif struct.unpack_from(f"{swapped}I", raw, 4)[0] == AGX_ENDIAN_MARKER:
            need_swap = True
            self._prefix = swapped
        else:
            raise AGXFormatError(f"Bad endian marker (0x{marker:08x}).")

        version, marker, object_type, time_steps, constant_count = self._unpack("5I", raw)

        host_little = self._host_byteorder == "little"
        self._header = Header(
            version=version,
            object_type=object_type,
            time_steps=time_steps,
            constant_param_count=constant_count,
            endian_marker=marker,
            host_little_endian=host_little,
            file_little_endian=(not host_little) if need_swap else host_little,
            need_byte_swap=need_swap,
        )

        raw = self._read_exact(4)
        if raw is None:
            raise AGXFormatError("Incomplete subtype block.")
        (subtype_len,) = self._unpack("I", raw)
        subtype = self._read_exact(subtype_len)
        if subtype is None:
            raise AGXFormatError("Incomplete subtype block.")
        self._subtype = subtype.decode("utf-8", errors="replace")

        if version != AGX_VERSION:
            warnings.warn(f"AGXB version {version} is not {AGX_VERSION}, decoding it as version {AGX_VERSION}.",
                          stacklevel=3)

        cons.debug(f"AGXB v{version}: {time_steps} time step(s), {constant_count} constant(s), "
                   f"byte swap {'needed' if need_swap else 'not needed'}.")

        self._constants_offset  = self._pos
        self._constants_read    = 0
        self._time_steps_offset = self._pos if constant_count == 0 else None
        self._steps_begun       = 0
        self._in_step           = False
        self._step_param_count  = 0
        self._step_params_read  = 0

        self._state = ReaderState.HEADER_READ

    def get_header(self) -> Header:
        return self._header

    def get_subtype(self) -> str:
        return self._subtype

    # === records ===

    def _decode_record(self, materialize: bool) -> int:
        raw = self._read_exact(4)
        if raw is None:
            return -1
        (name_len,) = self._unpack("I", raw)

        if materialize:
            if not self._read_into_buffer(0, name_len):
                return -1
        elif not self._skip(name_len):
            return -1

        flag = self._read_exact(1)
        if flag is None or flag[0] > 1:
            return -1
        is_array = flag[0] == 1

        if is_array:
            raw = self._read_exact(4 + 8 + 8)
            if raw is None:
                return -1
            type_id, element_count, data_bytes = self._unpack("IQQ", raw)
        else:
            raw = self._read_exact(4 + 4)
            if raw is None:
                return -1
            type_id, data_bytes = self._unpack("II", raw)
            element_count = 0

        if not materialize:
            return 1 if self._skip(data_bytes) else -1

        if not self._read_into_buffer(name_len, data_bytes):
            return -1

        with memoryview(self._buffer) as mv:
            view = self.view
            view.name_bytes    = mv[:name_len].toreadonly()
            view.is_array      = is_array
            view.type          = DataType.UNKNOWN if is_array else type_id
            view.element_type  = type_id if is_array else DataType.UNKNOWN
            view.element_count = element_count
            view.data          = mv[name_len:name_len + data_bytes].toreadonly()

        return 1

    def _check_pending(self) -> bool:
        if self._state is ReaderState.ERROR:
            return False
        if self._pending_error:
            self._fail()
            return False
        return True

    # === constants ===

    def reset_constants(self) -> None:
        """Positions the reader at the first constant parameter."""
        if self._state is ReaderState.ERROR:
            return

        try:
            self._seek(self._constants_offset)
        except OSError:
            self._fail()
            return

        self._constants_read = 0
        self._in_step        = False
        self._pending_error  = False
        self._state          = ReaderState.CONSTANTS
        self.view.clear()

    def next_constant(self) -> int:
        if not self._check_pending():
            return -1

        if self._state is ReaderState.HEADER_READ:
            self._state = ReaderState.CONSTANTS
        if self._state is not ReaderState.CONSTANTS:
            return 0

        if self._constants_read >= self._header.constant_param_count:
            return 0

        if self._decode_record(materialize=True) < 0:
            return self._fail()

        self._constants_read += 1
        if self._constants_read == self._header.constant_param_count:
            self._time_steps_offset = self._pos

        return 1

    # === time steps ===

    def reset_time_steps(self) -> None:
        """Positions the reader before the first time step block."""
        if self._state is ReaderState.ERROR:
            return

        if self._time_steps_offset is None:
            # The constants region has not been walked to its end yet.
            if self._state not in (ReaderState.HEADER_READ, ReaderState.CONSTANTS):
                self.reset_constants()
            while self._constants_read < self._header.constant_param_count:
                if self._decode_record(materialize=False) < 0:
                    self._fail()
                    return
                self._constants_read += 1
            self._time_steps_offset = self._pos

        try:
            self._seek(self._time_steps_offset)
        except OSError:
            self._fail()
            return

        self._steps_begun    = 0
        self._in_step        = False
        self._pending_error  = False
        self._state          = ReaderState.TIME_STEPS
        self.view.clear()

    def begin_next_time_step(self) -> Tuple[int, int, int]:
        """
        Advances to the next time step block.

        Any parameters left unread in the current block are skipped first.

        Returns:
            (status, time step index, parameter count); status is 1, 0 or -1.
        """
        if not self._check_pending():
            return -1, 0, 0

        if self._state in (ReaderState.HEADER_READ, ReaderState.CONSTANTS):
            self.reset_time_steps()
            if self._state is ReaderState.ERROR:
                return -1, 0, 0

        if self._state is not ReaderState.TIME_STEPS:
            return 0, 0, 0

        if self._in_step:
            self.skip_remaining_time_step()
            if not self._check_pending():
                return -1, 0, 0

        if self._steps_begun >= self._header.time_steps:
            self._in_step = False
            self._state   = ReaderState.DONE
            return 0, 0, 0

        raw = self._read_exact(8)
        if raw is None:
            return self._fail(), 0, 0
        index, param_count = self._unpack("II", raw)

        self._steps_begun      += 1
        self._in_step           = True
        self._step_param_count  = param_count
        self._step_params_read  = 0
        self.view.clear()

        return 1, index, param_count

    def next_time_step_param(self) -> int:
        if not self._check_pending():
            return -1

        if self._state is not ReaderState.TIME_STEPS or not self._in_step:
            return 0
        if self._step_params_read >= self._step_param_count:
            return 0

        if self._decode_record(materialize=True) < 0:
            return self._fail()

        self._step_params_read += 1
        return 1

    def skip_remaining_time_step(self) -> None:
        """
        Consumes the unread records of the current block without decoding
        them. A malformed record stops the skip; the error is reported by
        the next decode call instead.
        """
        if self._state is not ReaderState.TIME_STEPS or not self._in_step or self._pending_error:
            return

        while self._step_params_read < self._step_param_count:
            if self._decode_record(materialize=False) < 0:
                self._pending_error = True
                return
            self._step_params_read += 1

        self.view.clear()

    # === pythonic helpers ===

    def iter_constants(self) -> Iterator[ParamView]:
        """
        Yields the reader's view once per constant parameter.

        Raises:
            AGXFormatError: On a malformed record.
        """
        self.reset_constants()
        while True:
            rc = self.next_constant()
            if rc < 0:
                raise AGXFormatError(f"Malformed constant parameter record #{self._constants_read}.")
            if rc == 0:
                return
            yield self.view

    def iter_time_steps(self) -> Iterator[Tuple[int, int]]:
        """
        Yields (time step index, parameter count) per block. Parameters of
        the current block can be read with iter_time_step_params() before
        advancing.

        Raises:
            AGXFormatError: On a malformed block.
        """
        self.reset_time_steps()
        while True:
            rc, index, param_count = self.begin_next_time_step()
            if rc < 0:
                raise AGXFormatError(f"Malformed time step block #{self._steps_begun}.")
            if rc == 0:
                return
            yield index, param_count

    def iter_time_step_params(self) -> Iterator[ParamView]:
        while True:
            rc = self.next_time_step_param()
            if rc < 0:
                raise AGXFormatError(f"Malformed parameter record in time step block #{self._steps_begun - 1}.")
            if rc == 0:
                return
            yield self.view

    def read_store(self, strict: bool = False) -> ParamStore:
        """
        Decodes the whole file into a new ParamStore, copying every payload.

        Time step blocks are stored by their position in the file. Scopes
        are added as blocks are decoded, so a corrupt time step count cannot
        allocate more scopes than the file holds blocks. The store's
        byteorder is the file's, since payloads are kept as stored.
        """
        header = self.get_header()

        store = ParamStore(registry=self.registry, strict=strict,
                           byteorder="little" if header.file_little_endian else "big")
        store.set_object_type(header.object_type)
        store.set_object_subtype(self.get_subtype())

        for view in self.iter_constants():
            store.put(view.name, view.copy())

        for position, _ in enumerate(self.iter_time_steps()):
            store.set_time_step_count(position + 1)
            for view in self.iter_time_step_params():
                store.put(view.name, view.copy(), time_step=position)

        return store


def read(filepath: str, registry: Optional[TypeRegistry] = None) -> ParamStore:
    with Reader(filepath, registry=registry) as r:
        return r.read_store()
