"""
A small animated quad: the store behind `agx demo` and most tests.

Constants: bbox.min and bbox.max (float32 vec3) and a uint32 index array
for two triangles. Each time step holds the four vertex positions (float32
vec3 array) and a normalized scalar time.
"""

import numpy as np

from .datatypes import DataType
from .store     import ParamStore


def quad_positions(t: int) -> np.ndarray:
    phase = np.float32(0.5) * np.float32(t)
    return np.array([
        [0.0, 0.0, np.sin(phase)],
        [1.0, 0.0, np.cos(phase)],
        [1.0, 1.0, np.sin(phase + np.float32(0.3))],
        [0.0, 1.0, np.cos(phase + np.float32(0.3))],
    ], dtype=np.float32)


def build_store(time_steps: int = 4, store: ParamStore = None) -> ParamStore:
    store = store if store is not None else ParamStore()

    store.set_object_type(DataType.GEOMETRY)
    store.set_object_subtype("triangle")

    store.set_parameter("bbox.min", DataType.FLOAT32_VEC3, np.zeros(3, dtype=np.float32))
    store.set_parameter("bbox.max", DataType.FLOAT32_VEC3, np.ones(3, dtype=np.float32))

    indices = np.array([0, 1, 2, 2, 3, 0], dtype=np.uint32)
    store.set_parameter_array("indices", DataType.UINT32, indices, len(indices))

    store.set_time_step_count(time_steps)
    for t in range(time_steps):
        store.begin_time_step(t)

        positions = quad_positions(t)
        store.set_time_step_parameter_array(t, "vertex.position", DataType.FLOAT32_VEC3,
                                            positions, len(positions))
        time = np.float32(t / (time_steps - 1)) if time_steps > 1 else np.float32(0)
        store.set_time_step_parameter(t, "time", DataType.FLOAT32, np.array([time]))

        store.end_time_step(t)

    return store
