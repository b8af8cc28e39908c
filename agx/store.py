"""
In-memory parameter store for the writer side.

A ParamStore holds one constants scope and one scope per time step. Each
scope maps a parameter name to a Param: either a single value of some type,
or a 1D array of elements of some type. Every setter copies the caller's
bytes, sized from the type registry, so the store never aliases caller
memory.

The setters are deliberately permissive:

- a name of None makes the call a no-op,
- unknown types (size 0) store an empty payload,
- payloads shorter than the declared size are zero padded, longer ones are
  truncated,
- an out-of-range time step index is clamped to the last valid index
  (unless the store was created with strict=True, in which case
  AGXIndexError is raised).
"""

import dataclasses
from typing import Any, Dict, List, Optional

import numpy as np

from .common    import AGXIndexError, byteorder_prefix
from .datatypes import REGISTRY, DataType, TypeRegistry, component_layout
from .printer   import cons


@dataclasses.dataclass
class Param:
    is_array:      bool
    type:          int   = DataType.UNKNOWN
    element_type:  int   = DataType.UNKNOWN
    element_count: int   = 0
    data:          bytes = b""

    @staticmethod
    def scalar(type_id: int, data: bytes) -> "Param":
        return Param(is_array=False, type=int(type_id), data=bytes(data))

    @staticmethod
    def array(element_type: int, element_count: int, data: bytes) -> "Param":
        return Param(is_array=True, element_type=int(element_type),
                     element_count=int(element_count), data=bytes(data))

    @property
    def value_type(self) -> int:
        """ The scalar type, or the element type of an array. """
        return self.element_type if self.is_array else self.type


Scope = Dict[str, Param]


def _as_bytes(value: Any, type_id: int, byteorder: Optional[str]) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return memoryview(value).tobytes()

    if isinstance(value, (list, tuple, int, float)):
        layout = component_layout(type_id)
        value  = np.asarray(value, dtype=layout[1] if layout is not None else None)
    elif isinstance(value, np.generic):
        value = np.asarray(value)

    if isinstance(value, np.ndarray):
        dtype = value.dtype
        if byteorder is not None:
            dtype = dtype.newbyteorder(byteorder_prefix(byteorder))
        return np.ascontiguousarray(value, dtype=dtype).tobytes()

    return memoryview(value).tobytes()


def copy_bytes(value: Any, type_id: int, nbytes: int, byteorder: Optional[str] = None) -> bytes:
    """
    Returns exactly nbytes bytes taken from value.

    value may be None (all zeros), any buffer object, a numpy array, or a
    number/sequence of numbers which is packed using the component dtype of
    type_id. Numbers and numpy arrays are packed in byteorder ("little" or
    "big", None for the host's); other buffers are copied verbatim.
    """
    if value is None or nbytes <= 0:
        return bytes(max(nbytes, 0))

    raw = _as_bytes(value, type_id, byteorder)
    if len(raw) >= nbytes:
        return raw[:nbytes]

    return raw + bytes(nbytes - len(raw))


class ParamStore:
    """
    Constants plus per-time-step parameters of one animated object.

    Attributes:
        registry:    Type registry used to size payloads.
        strict:      Raise instead of clamping out-of-range time step indices.
        byteorder:   "little" or "big" to pack numeric values for a host of
                     that byte order; None packs them in the host's.
        object_type: Type id recorded in the file header.
        subtype:     Free-form object subtype string.
        constants:   Scope of parameters that hold for the whole animation.
        time_steps:  One scope per time step.
    """

    def __init__(self, registry: Optional[TypeRegistry] = None, strict: bool = False,
                 byteorder: Optional[str] = None):
        self.registry:    TypeRegistry  = registry if registry is not None else REGISTRY
        self.strict:      bool          = strict
        self.byteorder:   Optional[str] = byteorder
        self.object_type: int           = DataType.UNKNOWN
        self.subtype:     str           = ""
        self.constants:   Scope         = {}
        self.time_steps:  List[Scope]   = []

    # === header ===

    def set_object_type(self, type_id: int) -> None:
        self.object_type = int(type_id)

    def set_object_subtype(self, subtype: Optional[str]) -> None:
        self.subtype = subtype if subtype is not None else ""

    # === time steps ===

    @property
    def time_step_count(self) -> int:
        return len(self.time_steps)

    def set_time_step_count(self, count: int) -> None:
        """ Grows with empty scopes, or drops every scope at index >= count. """
        count = max(int(count), 0)

        if count < len(self.time_steps):
            del self.time_steps[count:]
        else:
            self.time_steps.extend({} for _ in range(count - len(self.time_steps)))

    def begin_time_step(self, index: int) -> None:
        pass

    def end_time_step(self, index: int) -> None:
        pass

    def _time_step_scope(self, index: int) -> Optional[Scope]:
        count = len(self.time_steps)
        if 0 <= index < count:
            return self.time_steps[index]

        if self.strict:
            raise AGXIndexError(f"Time step {index} is out of range, the store has {count} time step(s).")

        if count == 0:
            cons.debug(f"Dropping write to time step {index}: no time steps are allocated.")
            return None

        cons.debug(f"Time step {index} is out of range, writing to time step {count - 1} instead.")
        return self.time_steps[count - 1]

    # === setters ===

    def _make_scalar(self, type_id: int, value: Any) -> Param:
        nbytes = self.registry.size_of(type_id)
        return Param.scalar(type_id, copy_bytes(value, type_id, nbytes, self.byteorder))

    def _make_array(self, element_type: int, data: Any, element_count: int) -> Param:
        element_count = max(int(element_count), 0)
        nbytes = self.registry.size_of(element_type) * element_count
        return Param.array(element_type, element_count, copy_bytes(data, element_type, nbytes, self.byteorder))

    def set_parameter(self, name: str, type_id: int, value: Any) -> None:
        if name is None:
            return

        self.constants[name] = self._make_scalar(type_id, value)

    def set_parameter_array(self, name: str, element_type: int, data: Any, element_count: int) -> None:
        if name is None:
            return

        self.constants[name] = self._make_array(element_type, data, element_count)

    def set_time_step_parameter(self, index: int, name: str, type_id: int, value: Any) -> None:
        if name is None:
            return

        scope = self._time_step_scope(index)
        if scope is not None:
            scope[name] = self._make_scalar(type_id, value)

    def set_time_step_parameter_array(self, index: int, name: str, element_type: int,
                                      data: Any, element_count: int) -> None:
        if name is None:
            return

        scope = self._time_step_scope(index)
        if scope is not None:
            scope[name] = self._make_array(element_type, data, element_count)

    def put(self, name: str, param: Param, time_step: Optional[int] = None) -> None:
        """
        Stores an already built Param as is, without resizing its payload.

        time_step=None targets the constants scope; other indices follow the
        same clamping rules as the setters.
        """
        if name is None:
            return

        if time_step is None:
            self.constants[name] = param
            return

        scope = self._time_step_scope(time_step)
        if scope is not None:
            scope[name] = param

    # === getters ===

    def get_parameter(self, name: str) -> Optional[Param]:
        return self.constants.get(name)

    def get_time_step_parameter(self, index: int, name: str) -> Optional[Param]:
        if not 0 <= index < len(self.time_steps):
            return None
        return self.time_steps[index].get(name)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParamStore):
            return NotImplemented

        return (self.object_type == other.object_type
                and self.subtype    == other.subtype
                and self.constants  == other.constants
                and self.time_steps == other.time_steps)

    def __repr__(self) -> str:
        return (f"ParamStore(constants={len(self.constants)}, "
                f"time_steps={len(self.time_steps)}, subtype={self.subtype!r})")
