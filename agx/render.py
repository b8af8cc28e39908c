"""
Human readable rendering of parameter values.

Values are decoded according to their type: vectors and matrices become
flat lists of their components, 8-bit and boolean types are shown as
unsigned bytes, and any type without a numeric layout (or an empty payload)
falls back to a per-byte listing. Arrays render as one group per element.
"""

from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .datatypes import REGISTRY, TypeRegistry, component_layout


Number = Union[int, float]

# 8-bit values are shown unsigned for readability.
_DISPLAY_DTYPES = {"i1": "u1"}


def scalar_info(type_id: int) -> Tuple[int, Optional[np.dtype]]:
    """
    Returns (component count, display dtype) of a type, or (0, None) for
    types that render as raw bytes.
    """
    layout = component_layout(type_id)
    if layout is None:
        return 0, None

    count, dtype = layout
    return count, np.dtype(_DISPLAY_DTYPES.get(dtype, dtype))


def render_scalars(type_id: int, data: bytes, byteorder: Optional[str] = None) -> List[Number]:
    """
    Decodes one value of type type_id.

    Args:
        byteorder: "little" or "big" when the payload is known to be in a
                   specific order; None reads it in the host's order.
    """
    raw = bytes(data)

    count, dtype = scalar_info(type_id)
    if count == 0 or len(raw) == 0 or len(raw) < count * dtype.itemsize:
        return list(raw)

    if byteorder is not None and dtype.itemsize > 1:
        dtype = dtype.newbyteorder('<' if byteorder == "little" else '>')

    return np.frombuffer(raw, dtype=dtype, count=count).tolist()


def render_param(is_array: bool, type_id: int, data: bytes, element_count: int = 0,
                 registry: Optional[TypeRegistry] = None,
                 byteorder: Optional[str] = None) -> Union[List[Number], List[List[Number]]]:
    """
    Decodes a scalar value, or an array as a list of per-element groups.

    type_id is the element type for arrays.
    """
    if not is_array:
        return render_scalars(type_id, data, byteorder)

    registry = registry if registry is not None else REGISTRY
    elem_bytes = registry.size_of(type_id)
    if elem_bytes == 0 or element_count == 0:
        return []

    raw = bytes(data)
    return [
        render_scalars(type_id, raw[e * elem_bytes:(e + 1) * elem_bytes], byteorder)
        for e in range(min(element_count, len(raw) // elem_bytes))
    ]


def format_number(v: Number) -> str:
    if isinstance(v, float):
        return f"{v:.7g}"
    return str(v)


def format_scalars(values: Sequence[Number]) -> str:
    return ", ".join(format_number(v) for v in values)


def round_float(v: Number) -> Number:
    """ Rounds floats to 7 significant digits, leaves integers untouched. """
    if isinstance(v, float):
        return float(format_number(v))
    return v
