"""
Type Registry.

Closed mapping from ANARI data type identifiers to their byte size and
display name. Every value stored in an AGXB file carries one of these ids;
the codec only uses the size for bookkeeping and never interprets the bytes.

Usage
-----
The global REGISTRY holds the standard table. Code that needs a different
table (tests, or a config file that adds vendor types) builds its own
TypeRegistry and passes it to the store, reader or renderer:

    from agx.datatypes import REGISTRY, DataType

    REGISTRY.size_of(DataType.FLOAT32_VEC3)   # 12
    REGISTRY.name_of(DataType.FLOAT32_VEC3)   # 'ANARI_FLOAT32_VEC3'
    REGISTRY.size_of(123456)                  # 0 (unknown)

Unknown ids are not an error: their size is 0 and their name is
'ANARI_UNKNOWN'.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, Optional, Tuple


class DataType(IntEnum):
    """
    ANARI logical data types understood by the default registry.

    The numeric values are the ANARIDataType enum values, which is what gets
    written to the file.
    """
    UNKNOWN = 0
    DATA_TYPE = 100
    STRING = 101
    VOID_POINTER = 102
    BOOL = 103

    OBJECT = 502
    ARRAY = 503
    ARRAY1D = 504
    ARRAY2D = 505
    ARRAY3D = 506
    CAMERA = 507
    FRAME = 508
    GEOMETRY = 509
    GROUP = 510
    INSTANCE = 511
    LIGHT = 512
    MATERIAL = 513
    RENDERER = 514
    SURFACE = 515
    SAMPLER = 516
    SPATIAL_FIELD = 517
    VOLUME = 518
    WORLD = 519

    INT8 = 1000
    INT8_VEC2 = 1001
    INT8_VEC3 = 1002
    INT8_VEC4 = 1003
    UINT8 = 1004
    UINT8_VEC2 = 1005
    UINT8_VEC3 = 1006
    UINT8_VEC4 = 1007
    INT16 = 1008
    INT16_VEC2 = 1009
    INT16_VEC3 = 1010
    INT16_VEC4 = 1011
    UINT16 = 1012
    UINT16_VEC2 = 1013
    UINT16_VEC3 = 1014
    UINT16_VEC4 = 1015
    INT32 = 1016
    INT32_VEC2 = 1017
    INT32_VEC3 = 1018
    INT32_VEC4 = 1019
    UINT32 = 1020
    UINT32_VEC2 = 1021
    UINT32_VEC3 = 1022
    UINT32_VEC4 = 1023
    INT64 = 1024
    INT64_VEC2 = 1025
    INT64_VEC3 = 1026
    INT64_VEC4 = 1027
    UINT64 = 1028
    UINT64_VEC2 = 1029
    UINT64_VEC3 = 1030
    UINT64_VEC4 = 1031

    FLOAT32 = 1068
    FLOAT32_VEC2 = 1069
    FLOAT32_VEC3 = 1070
    FLOAT32_VEC4 = 1071
    FLOAT64 = 1072
    FLOAT64_VEC2 = 1073
    FLOAT64_VEC3 = 1074
    FLOAT64_VEC4 = 1075

    FLOAT32_MAT2 = 2012
    FLOAT32_MAT3 = 2013
    FLOAT32_MAT4 = 2014
    FLOAT32_MAT2x3 = 2015
    FLOAT32_MAT3x4 = 2016


# Object handles are opaque pointers in ANARI.
HANDLE_SIZE = 8

_MATRIX_COMPONENTS = {
    DataType.FLOAT32_MAT2: 4,
    DataType.FLOAT32_MAT3: 9,
    DataType.FLOAT32_MAT4: 16,
    DataType.FLOAT32_MAT2x3: 6,
    DataType.FLOAT32_MAT3x4: 12,
}


_SCALAR_DTYPES = {
    "INT8": "i1", "UINT8": "u1", "INT16": "i2", "UINT16": "u2",
    "INT32": "i4", "UINT32": "u4", "INT64": "i8", "UINT64": "u8",
    "FLOAT32": "f4", "FLOAT64": "f8",
}


def component_layout(type_id: int) -> Optional[Tuple[int, str]]:
    """
    Returns (component count, numpy dtype string) of a numeric type, or None
    for types whose bytes are not a plain sequence of numbers (handles,
    strings, unknown ids).

    The dtype has no byte order prefix: values are stored in the writer's
    byte order.
    """
    try:
        t = DataType(int(type_id))
    except ValueError:
        return None

    if t in _MATRIX_COMPONENTS:
        return _MATRIX_COMPONENTS[t], "f4"
    if t == DataType.BOOL:
        return 1, "u1"

    base, _, vec = t.name.partition("_VEC")
    if base in _SCALAR_DTYPES:
        return (int(vec) if vec else 1), _SCALAR_DTYPES[base]

    return None


@dataclass(frozen=True)
class TypeInfo:
    """Size and display name of one type id."""
    type_id: int
    name: str
    size: int


def _default_size(t: DataType) -> int:
    if t in _MATRIX_COMPONENTS:
        return 4 * _MATRIX_COMPONENTS[t]
    if t == DataType.BOOL:
        return 1
    if DataType.OBJECT <= t <= DataType.WORLD or t == DataType.VOID_POINTER:
        return HANDLE_SIZE

    base, _, vec = t.name.partition("_VEC")
    if base in _SCALAR_DTYPES:
        return int(_SCALAR_DTYPES[base][1:]) * (int(vec) if vec else 1)

    # UNKNOWN, DATA_TYPE, STRING: not representable as a fixed-size value.
    return 0


def default_type_infos() -> Iterable[TypeInfo]:
    """Yields the TypeInfo of every DataType member."""
    for t in DataType:
        yield TypeInfo(type_id=int(t), name=f"ANARI_{t.name}", size=_default_size(t))


class TypeRegistry:
    """
    Lookup table from type id to TypeInfo.

    The table is closed once built: lookups of ids that were never
    registered report size 0 and the name 'ANARI_UNKNOWN'.
    """

    UNKNOWN_NAME = "ANARI_UNKNOWN"

    def __init__(self, infos: Optional[Iterable[TypeInfo]] = None):
        self._infos: Dict[int, TypeInfo] = {}
        self._by_name: Dict[str, TypeInfo] = {}

        for info in (infos if infos is not None else default_type_infos()):
            self.register(info)

    def register(self, info: TypeInfo) -> None:
        """
        Adds (or replaces) an entry.

        Raises:
            ValueError: If the size is negative.
        """
        if info.size < 0:
            raise ValueError(f"Type '{info.name}' has a negative size ({info.size})")

        previous = self._infos.get(info.type_id)
        if previous is not None:
            self._by_name.pop(previous.name.upper(), None)

        self._infos[info.type_id] = info
        self._by_name[info.name.upper()] = info

    def extended(self, infos: Iterable[TypeInfo]) -> "TypeRegistry":
        """Returns a copy of this registry with extra entries."""
        reg = TypeRegistry(self._infos.values())
        for info in infos:
            reg.register(info)
        return reg

    def size_of(self, type_id: int) -> int:
        info = self._infos.get(int(type_id))
        return info.size if info is not None else 0

    def name_of(self, type_id: int) -> str:
        info = self._infos.get(int(type_id))
        return info.name if info is not None else self.UNKNOWN_NAME

    def lookup(self, name: str) -> int:
        """
        Returns the id registered under a display name.

        Both 'ANARI_FLOAT32_VEC3' and 'FLOAT32_VEC3' are accepted, case
        insensitively.

        Raises:
            KeyError: If no such type is registered.
        """
        key = name.upper()
        if not key.startswith("ANARI_"):
            key = f"ANARI_{key}"
        if key not in self._by_name:
            raise KeyError(f"Unknown type name '{name}'")
        return self._by_name[key].type_id

    def __contains__(self, type_id: int) -> bool:
        return int(type_id) in self._infos


REGISTRY = TypeRegistry()


def size_of(type_id: int) -> int:
    return REGISTRY.size_of(type_id)


def name_of(type_id: int) -> str:
    return REGISTRY.name_of(type_id)
