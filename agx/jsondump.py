"""
JSON rendering of a ParamStore.

The output is meant for eyeballing dumps and diffing them in tests; it is
not an interchange format and cannot be read back:

    {
      "timeSteps": 4,
      "constants": {
        "bbox.min": {"type": "ANARI_FLOAT32_VEC3", "value": [0, 0, 0]}
      },
      "timeStepData": [
        {"index": 0, "params": {
          "vertex.position": {"arrayElementType": "ANARI_FLOAT32_VEC3",
                              "elementCount": 4, "data": [[...], ...]}
        }}
      ]
    }
"""

import json
from typing import Any, Dict, Optional

from .common    import file_write
from .datatypes import TypeRegistry
from .render    import render_param, round_float
from .store     import Param, ParamStore, Scope


def param_to_dict(param: Param, registry: TypeRegistry, byteorder: Optional[str] = None) -> Dict[str, Any]:
    values = render_param(param.is_array, param.value_type, param.data,
                          param.element_count, registry, byteorder)

    if not param.is_array:
        return {
            "type":  registry.name_of(param.type),
            "value": [ round_float(v) for v in values ],
        }

    return {
        "arrayElementType": registry.name_of(param.element_type),
        "elementCount":     param.element_count,
        "data":             [ [ round_float(v) for v in e ] for e in values ],
    }


def _scope_to_dict(scope: Scope, registry: TypeRegistry, byteorder: Optional[str]) -> Dict[str, Any]:
    return { name: param_to_dict(param, registry, byteorder) for name, param in scope.items() }


def to_json_dict(store: ParamStore, byteorder: Optional[str] = None) -> Dict[str, Any]:
    """ Payload numbers are decoded in byteorder, defaulting to the store's. """
    registry  = store.registry
    byteorder = byteorder if byteorder is not None else store.byteorder

    return {
        "timeSteps": store.time_step_count,
        "constants": _scope_to_dict(store.constants, registry, byteorder),
        "timeStepData": [
            { "index": i, "params": _scope_to_dict(scope, registry, byteorder) }
            for i, scope in enumerate(store.time_steps)
        ],
    }


def dumps(store: ParamStore, byteorder: Optional[str] = None, indent: int = 2) -> str:
    return json.dumps(to_json_dict(store, byteorder), indent=indent) + "\n"


def write_json(store: ParamStore, filepath: str, byteorder: Optional[str] = None) -> None:
    """
    Raises:
        AGXIOError: If the file cannot be written.
    """
    file_write(filepath, dumps(store, byteorder))
