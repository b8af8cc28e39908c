"""
Unit tests for reader.py module.

Tests header decoding, endianness detection, the decode state machine,
view aliasing and behaviour on truncated or malformed input.
"""

import io
import os
import struct
import tempfile
import tracemalloc
import unittest

import numpy as np

from .common    import AGXFormatError, AGXIOError, HOST_BYTEORDER, opposite_byteorder
from .datatypes import DataType
from .demo      import build_store
from .jsondump  import to_json_dict
from .reader    import Reader, ReaderState, read
from .store     import ParamStore
from .writer    import Encoder, to_bytes, write


def _walk(r: Reader) -> bool:
    """Decodes everything through the status-code API; False on -1."""
    r.reset_constants()
    while True:
        rc = r.next_constant()
        if rc < 0:
            return False
        if rc == 0:
            break

    r.reset_time_steps()
    while True:
        rc, _, _ = r.begin_next_time_step()
        if rc < 0:
            return False
        if rc == 0:
            return True
        while True:
            rc = r.next_time_step_param()
            if rc < 0:
                return False
            if rc == 0:
                break


def _scenario_store() -> ParamStore:
    store = ParamStore()
    store.set_object_type(DataType.GEOMETRY)
    store.set_parameter("bbox.min", DataType.FLOAT32_VEC3, np.zeros(3, dtype=np.float32))
    store.set_time_step_count(4)
    for t in range(4):
        positions = np.full((4, 3), t, dtype=np.float32)
        store.set_time_step_parameter_array(t, "vertex.position", DataType.FLOAT32_VEC3, positions, 4)
        store.set_time_step_parameter(t, "time", DataType.FLOAT32, [t / 3])
    return store


class TestHeader(unittest.TestCase):
    """Tests for header decoding."""

    def test_native_header(self):
        """A native file needs no swap and reports the host's endianness."""
        store = build_store(4)
        r = Reader(io.BytesIO(to_bytes(store)))
        hdr = r.get_header()

        self.assertEqual(hdr.version, 1)
        self.assertEqual(hdr.object_type, DataType.GEOMETRY)
        self.assertEqual(hdr.time_steps, 4)
        self.assertEqual(hdr.constant_param_count, 3)
        self.assertEqual(hdr.endian_marker, 0x01020304)
        self.assertFalse(hdr.need_byte_swap)
        self.assertEqual(hdr.host_little_endian, HOST_BYTEORDER == "little")
        self.assertEqual(hdr.file_little_endian, hdr.host_little_endian)
        self.assertEqual(r.get_subtype(), "triangle")
        self.assertEqual(r.state, ReaderState.HEADER_READ)

    def test_swapped_header(self):
        """A file in the opposite byte order decodes to the same values."""
        store = build_store(4)
        other = opposite_byteorder(HOST_BYTEORDER)
        r = Reader(io.BytesIO(Encoder(other).encode_bytes(store)))
        hdr = r.get_header()

        self.assertTrue(hdr.need_byte_swap)
        self.assertEqual(hdr.endian_marker, 0x01020304)
        self.assertEqual(hdr.file_little_endian, other == "little")
        self.assertEqual(hdr.time_steps, 4)
        self.assertEqual(hdr.constant_param_count, 3)
        self.assertEqual(hdr.object_type, DataType.GEOMETRY)

    def test_simulated_foreign_host(self):
        """Overriding the host byte order flips need_byte_swap."""
        blob = Encoder("little").encode_bytes(build_store(2))

        r = Reader(io.BytesIO(blob), host_byteorder="big")
        hdr = r.get_header()

        self.assertTrue(hdr.need_byte_swap)
        self.assertFalse(hdr.host_little_endian)
        self.assertTrue(hdr.file_little_endian)
        self.assertEqual(hdr.time_steps, 2)
        self.assertEqual(r.read_store(), build_store(2))

    def test_empty_subtype(self):
        """A missing subtype decodes as an empty string."""
        r = Reader(io.BytesIO(to_bytes(ParamStore())))
        self.assertEqual(r.get_subtype(), "")

    def test_bad_magic(self):
        """Anything not starting with AGXB is rejected."""
        blob = b"AGXC" + to_bytes(ParamStore())[4:]
        with self.assertRaises(AGXFormatError):
            Reader(io.BytesIO(blob))

    def test_bad_marker(self):
        """An unrecognizable endianness marker is rejected."""
        blob = bytearray(to_bytes(ParamStore()))
        blob[8:12] = b"\x01\x01\x01\x01"
        with self.assertRaises(AGXFormatError):
            Reader(io.BytesIO(bytes(blob)))

    def test_version_mismatch_warns(self):
        """Other versions are decoded as version 1 with a warning."""
        blob = bytearray(Encoder("little").encode_bytes(build_store(1)))
        blob[4:8] = struct.pack("<I", 2)

        with self.assertWarns(UserWarning):
            r = Reader(io.BytesIO(bytes(blob)))

        self.assertEqual(r.get_header().version, 2)
        self.assertTrue(_walk(r))

    def test_missing_file(self):
        """Unopenable paths raise AGXIOError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(AGXIOError):
                Reader(os.path.join(tmpdir, "missing.agxb"))

    def test_stream_offset(self):
        """A stream positioned past a prefix is decoded from that position."""
        blob = to_bytes(build_store(2))
        stream = io.BytesIO(b"junk" + blob)
        stream.seek(4)

        r = Reader(stream)
        self.assertEqual(r.read_store(), build_store(2))


class TestDecode(unittest.TestCase):
    """Tests for the status-code decode API."""

    def test_scenario(self):
        """One vec3 constant and four blocks of [vertex.position, time]."""
        r = Reader(io.BytesIO(to_bytes(_scenario_store())))

        r.reset_constants()
        self.assertEqual(r.next_constant(), 1)
        self.assertEqual(r.view.name, "bbox.min")
        self.assertEqual(r.view.name_length, 8)
        self.assertFalse(r.view.is_array)
        self.assertEqual(r.view.type, DataType.FLOAT32_VEC3)
        self.assertEqual(r.view.data_bytes, 12)
        self.assertEqual(struct.unpack("=3f", r.view.data), (0.0, 0.0, 0.0))
        self.assertEqual(r.next_constant(), 0)

        r.reset_time_steps()
        for t in range(4):
            status, index, count = r.begin_next_time_step()
            self.assertEqual((status, index, count), (1, t, 2))

            self.assertEqual(r.next_time_step_param(), 1)
            self.assertEqual(r.view.name, "vertex.position")
            self.assertTrue(r.view.is_array)
            self.assertEqual(r.view.element_type, DataType.FLOAT32_VEC3)
            self.assertEqual(r.view.element_count, 4)
            self.assertEqual(r.view.data_bytes, 48)
            self.assertEqual(np.frombuffer(r.view.data, dtype=np.float32).tolist(), [float(t)] * 12)

            self.assertEqual(r.next_time_step_param(), 1)
            self.assertEqual(r.view.name, "time")
            self.assertFalse(r.view.is_array)
            self.assertEqual(r.view.type, DataType.FLOAT32)

            self.assertEqual(r.next_time_step_param(), 0)

        self.assertEqual(r.begin_next_time_step(), (0, 0, 0))
        self.assertEqual(r.state, ReaderState.DONE)

    def test_constants_exhaustion(self):
        """Exactly constant_param_count records, then 0 forever."""
        r = Reader(io.BytesIO(to_bytes(build_store(2))))
        r.reset_constants()

        names = []
        while r.next_constant() == 1:
            names.append(r.view.name)

        self.assertEqual(names, ["bbox.min", "bbox.max", "indices"])
        self.assertEqual(r.next_constant(), 0)
        self.assertEqual(r.next_constant(), 0)

    def test_reset_constants_rereads(self):
        """Constants can be read again after walking the time steps."""
        r = Reader(io.BytesIO(to_bytes(build_store(2))))
        self.assertTrue(_walk(r))

        r.reset_constants()
        count = 0
        while r.next_constant() == 1:
            count += 1
        self.assertEqual(count, 3)

    def test_time_steps_without_constants_pass(self):
        """reset_time_steps works before any constant was read."""
        r = Reader(io.BytesIO(to_bytes(build_store(3))))
        r.reset_time_steps()

        self.assertEqual(r.begin_next_time_step(), (1, 0, 2))

    def test_begin_from_header_state(self):
        """begin_next_time_step straight after opening finds the first block."""
        r = Reader(io.BytesIO(to_bytes(build_store(3))))
        self.assertEqual(r.begin_next_time_step(), (1, 0, 2))

    def test_next_param_outside_block(self):
        """next_time_step_param before any block returns 0."""
        r = Reader(io.BytesIO(to_bytes(build_store(1))))
        r.reset_time_steps()
        self.assertEqual(r.next_time_step_param(), 0)

    def test_begin_skips_unread_params(self):
        """Advancing without reading a block's params skips them."""
        r = Reader(io.BytesIO(to_bytes(build_store(4))))
        r.reset_time_steps()

        indices = []
        while True:
            status, index, _ = r.begin_next_time_step()
            if status != 1:
                break
            indices.append(index)

        self.assertEqual(indices, [0, 1, 2, 3])
        self.assertEqual(status, 0)

    def test_skip_remaining(self):
        """skip_remaining_time_step consumes the rest of the block."""
        r = Reader(io.BytesIO(to_bytes(build_store(2))))
        r.reset_time_steps()

        self.assertEqual(r.begin_next_time_step()[0], 1)
        self.assertEqual(r.next_time_step_param(), 1)
        r.skip_remaining_time_step()
        self.assertEqual(r.next_time_step_param(), 0)

        status, index, _ = r.begin_next_time_step()
        self.assertEqual((status, index), (1, 1))
        self.assertEqual(r.next_time_step_param(), 1)
        self.assertEqual(r.view.name, "vertex.position")

    def test_zero_size_type(self):
        """Records of unsized types carry an empty payload and keep their id."""
        store = ParamStore()
        store.set_parameter("u", 123456, b"abc")
        r = Reader(io.BytesIO(to_bytes(store)))

        self.assertEqual(r.next_constant(), 1)
        self.assertEqual(r.view.type, 123456)
        self.assertEqual(r.view.data_bytes, 0)

    def test_large_payload(self):
        """Records larger than the initial buffer are decoded intact."""
        values = np.arange(10000, dtype=np.float64)
        store = ParamStore()
        store.set_parameter_array("big", DataType.FLOAT64, values, len(values))
        store.set_parameter("after", DataType.UINT8, [7])

        r = Reader(io.BytesIO(to_bytes(store)))
        self.assertEqual(r.next_constant(), 1)
        self.assertEqual(np.frombuffer(r.view.data, dtype=np.float64).tolist(), values.tolist())
        self.assertEqual(r.next_constant(), 1)
        self.assertEqual(r.view.name, "after")
        self.assertEqual(bytes(r.view.data), b"\x07")

    def test_payload_not_swapped(self):
        """Payloads of swapped files are returned exactly as stored."""
        store = ParamStore()
        store.set_parameter("v", DataType.UINT32, b"\x01\x02\x03\x04")

        r = Reader(io.BytesIO(Encoder(opposite_byteorder(HOST_BYTEORDER)).encode_bytes(store)))
        self.assertEqual(r.next_constant(), 1)
        self.assertEqual(bytes(r.view.data), b"\x01\x02\x03\x04")


class TestViews(unittest.TestCase):
    """Tests for the lifetime of the reader's view."""

    def test_views_alias_reader_buffer(self):
        """Held views show the next record after another decode call."""
        r = Reader(io.BytesIO(to_bytes(build_store(1))))

        self.assertEqual(r.next_constant(), 1)
        name = r.view.name_bytes
        data = r.view.data
        self.assertEqual(bytes(name), b"bbox.min")

        self.assertEqual(r.next_constant(), 1)
        self.assertEqual(bytes(name), b"bbox.max")
        self.assertEqual(bytes(data), np.ones(3, dtype=np.float32).tobytes())

    def test_copy_survives(self):
        """view.copy() owns its bytes."""
        r = Reader(io.BytesIO(to_bytes(build_store(1))))

        self.assertEqual(r.next_constant(), 1)
        kept = r.view.copy()
        self.assertEqual(r.next_constant(), 1)

        self.assertEqual(kept.data, bytes(12))
        self.assertEqual(kept.type, DataType.FLOAT32_VEC3)

    def test_views_are_read_only(self):
        """Callers cannot write into the reader's buffer."""
        r = Reader(io.BytesIO(to_bytes(build_store(1))))
        self.assertEqual(r.next_constant(), 1)

        with self.assertRaises(TypeError):
            r.view.data[0] = 1


class TestErrors(unittest.TestCase):
    """Tests for malformed and truncated input."""

    def test_every_truncation_fails(self):
        """Every proper prefix either fails to open or yields -1."""
        blob = to_bytes(_scenario_store())

        for cut in range(len(blob)):
            try:
                r = Reader(io.BytesIO(blob[:cut]))
            except AGXFormatError:
                continue

            self.assertFalse(_walk(r), f"prefix of {cut} bytes decoded cleanly")
            self.assertEqual(r.state, ReaderState.ERROR)

    def test_full_blob_succeeds(self):
        """The untruncated blob decodes cleanly."""
        r = Reader(io.BytesIO(to_bytes(_scenario_store())))
        self.assertTrue(_walk(r))

    def test_error_latches(self):
        """After -1 every decode call returns -1, resets included."""
        blob = to_bytes(build_store(1))
        r = Reader(io.BytesIO(blob[:40]))

        self.assertEqual(r.next_constant(), -1)
        self.assertEqual(r.state, ReaderState.ERROR)

        r.reset_constants()
        self.assertEqual(r.next_constant(), -1)
        r.reset_time_steps()
        self.assertEqual(r.begin_next_time_step(), (-1, 0, 0))
        self.assertEqual(r.next_time_step_param(), -1)

    def test_oversized_record(self):
        """A record claiming more bytes than remain is malformed."""
        store = ParamStore()
        store.set_parameter_array("a", DataType.UINT8, [1, 2], 2)

        blob = bytearray(Encoder("little").encode_bytes(store))
        # header (24) + subtype length (4) + nameLen (4) + "a" + flag + elementType + elementCount
        offset = 24 + 4 + 4 + 1 + 1 + 4 + 8
        blob[offset:offset + 8] = struct.pack("<Q", 1 << 40)

        r = Reader(io.BytesIO(bytes(blob)))
        self.assertEqual(r.next_constant(), -1)

    def test_bad_array_flag(self):
        """isArray values above 1 are malformed."""
        store = ParamStore()
        store.set_parameter("a", DataType.UINT8, [1])

        blob = bytearray(Encoder("little").encode_bytes(store))
        blob[24 + 4 + 4 + 1] = 2

        r = Reader(io.BytesIO(bytes(blob)))
        self.assertEqual(r.next_constant(), -1)

    def test_skip_error_is_deferred(self):
        """A failed skip is reported by the next decode call."""
        blob = to_bytes(_scenario_store())
        # Keep the constant and the first block header, cut inside the block.
        store = ParamStore()
        store.set_parameter("bbox.min", DataType.FLOAT32_VEC3, None)
        cut = len(to_bytes(store)) + 8 + 20

        r = Reader(io.BytesIO(blob[:cut]))
        r.reset_time_steps()
        self.assertEqual(r.begin_next_time_step()[0], 1)

        r.skip_remaining_time_step()
        self.assertNotEqual(r.state, ReaderState.ERROR)
        self.assertEqual(r.next_time_step_param(), -1)
        self.assertEqual(r.state, ReaderState.ERROR)

    def test_iterators_raise(self):
        """The iterator helpers raise AGXFormatError on malformed input."""
        blob = to_bytes(build_store(1))
        r = Reader(io.BytesIO(blob[:-1]))

        with self.assertRaises(AGXFormatError):
            r.read_store()

    def test_closed_reader(self):
        """A closed reader only returns -1."""
        r = Reader(io.BytesIO(to_bytes(build_store(1))))
        r.close()

        self.assertEqual(r.next_constant(), -1)
        self.assertEqual(r.begin_next_time_step()[0], -1)


class TestReadStore(unittest.TestCase):
    """Tests for the whole-file helpers."""

    def test_round_trip(self):
        """Writing then reading reproduces the store."""
        store = build_store(4)
        r = Reader(io.BytesIO(to_bytes(store)))

        self.assertEqual(r.read_store(), store)

    def test_iterators(self):
        """iter_time_steps yields (index, count) and params can be read per block."""
        r = Reader(io.BytesIO(to_bytes(build_store(3))))

        self.assertEqual([view.name for view in r.iter_constants()], ["bbox.min", "bbox.max", "indices"])

        seen = []
        for index, count in r.iter_time_steps():
            seen.append((index, count, [view.name for view in r.iter_time_step_params()]))

        self.assertEqual(seen, [(t, 2, ["vertex.position", "time"]) for t in range(3)])

    def test_inflated_time_step_count(self):
        """A corrupt time step count fails without allocating a scope per claimed step."""
        blob = bytearray(Encoder("little").encode_bytes(build_store(2)))
        blob[16:20] = struct.pack("<I", 5_000_000)
        r = Reader(io.BytesIO(bytes(blob)))

        tracemalloc.start()
        try:
            with self.assertRaises(AGXFormatError):
                r.read_store()
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        self.assertLess(peak, 10 * 1024 * 1024)

    def test_store_keeps_file_byteorder(self):
        """Decoded stores carry the file's byte order and render in it."""
        other = opposite_byteorder(HOST_BYTEORDER)
        store = build_store(2, ParamStore(byteorder=other))

        decoded = Reader(io.BytesIO(Encoder(other).encode_bytes(store))).read_store()
        self.assertEqual(decoded.byteorder, other)
        self.assertEqual(decoded, store)

        d = to_json_dict(decoded)
        self.assertEqual(d["constants"]["bbox.max"]["value"], [1.0, 1.0, 1.0])
        self.assertEqual(d["timeStepData"][1]["params"]["time"]["value"], [1.0])
        self.assertEqual(d["constants"]["indices"]["data"], [[0], [1], [2], [2], [3], [0]])

    def test_read_file(self):
        """read() decodes a file written by write()."""
        store = build_store(2)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "quad.agxb")
            write(store, path)

            self.assertEqual(read(path), store)

            with Reader(path) as r:
                self.assertEqual(r.get_header().time_steps, 2)
            self.assertEqual(r.state, ReaderState.ERROR)


if __name__ == "__main__":
    unittest.main()
