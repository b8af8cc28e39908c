"""
Unit tests for datatypes.py module.

Tests the default type table, injected registries and name lookups.
"""

import unittest

from .datatypes import REGISTRY, DataType, TypeInfo, TypeRegistry, component_layout, size_of, name_of


class TestDefaultRegistry(unittest.TestCase):
    """Tests for the standard ANARI type table."""

    def test_scalar_sizes(self):
        """Scalar types should have their natural byte size."""
        self.assertEqual(REGISTRY.size_of(DataType.INT8), 1)
        self.assertEqual(REGISTRY.size_of(DataType.UINT16), 2)
        self.assertEqual(REGISTRY.size_of(DataType.FLOAT32), 4)
        self.assertEqual(REGISTRY.size_of(DataType.FLOAT64), 8)
        self.assertEqual(REGISTRY.size_of(DataType.UINT64), 8)
        self.assertEqual(REGISTRY.size_of(DataType.BOOL), 1)

    def test_vector_sizes(self):
        """Vector sizes should be component size times component count."""
        self.assertEqual(REGISTRY.size_of(DataType.FLOAT32_VEC3), 12)
        self.assertEqual(REGISTRY.size_of(DataType.INT32_VEC4), 16)
        self.assertEqual(REGISTRY.size_of(DataType.UINT8_VEC2), 2)
        self.assertEqual(REGISTRY.size_of(DataType.FLOAT64_VEC2), 16)

    def test_matrix_sizes(self):
        """Matrices are float32 component blocks."""
        self.assertEqual(REGISTRY.size_of(DataType.FLOAT32_MAT3), 36)
        self.assertEqual(REGISTRY.size_of(DataType.FLOAT32_MAT4), 64)
        self.assertEqual(REGISTRY.size_of(DataType.FLOAT32_MAT3x4), 48)

    def test_object_handles(self):
        """Object types are pointer sized handles."""
        self.assertEqual(REGISTRY.size_of(DataType.GEOMETRY), 8)
        self.assertEqual(REGISTRY.size_of(DataType.WORLD), 8)

    def test_unsized_types(self):
        """UNKNOWN and STRING have no fixed size."""
        self.assertEqual(REGISTRY.size_of(DataType.UNKNOWN), 0)
        self.assertEqual(REGISTRY.size_of(DataType.STRING), 0)

    def test_unknown_id(self):
        """Ids outside the table report size 0 and the unknown name."""
        self.assertEqual(REGISTRY.size_of(123456), 0)
        self.assertEqual(REGISTRY.name_of(123456), "ANARI_UNKNOWN")
        self.assertNotIn(123456, REGISTRY)
        self.assertIn(DataType.FLOAT32, REGISTRY)

    def test_names(self):
        """Display names carry the ANARI_ prefix."""
        self.assertEqual(REGISTRY.name_of(DataType.FLOAT32_VEC3), "ANARI_FLOAT32_VEC3")
        self.assertEqual(REGISTRY.name_of(1068), "ANARI_FLOAT32")
        self.assertEqual(name_of(DataType.GEOMETRY), "ANARI_GEOMETRY")
        self.assertEqual(size_of(DataType.UINT32), 4)

    def test_lookup(self):
        """lookup should accept names with or without prefix, in any case."""
        self.assertEqual(REGISTRY.lookup("ANARI_FLOAT32_VEC3"), DataType.FLOAT32_VEC3)
        self.assertEqual(REGISTRY.lookup("float32_vec3"), DataType.FLOAT32_VEC3)
        self.assertEqual(REGISTRY.lookup("FLOAT32_MAT2x3"), DataType.FLOAT32_MAT2x3)

    def test_lookup_unknown_raises(self):
        """lookup of an unregistered name should raise KeyError."""
        with self.assertRaises(KeyError):
            REGISTRY.lookup("FLOAT128")


class TestInjectedRegistry(unittest.TestCase):
    """Tests for registries built from custom tables."""

    def test_closed_table(self):
        """A custom table only knows its own entries."""
        reg = TypeRegistry([TypeInfo(type_id=7, name="ANARI_SEVEN", size=3)])

        self.assertEqual(reg.size_of(7), 3)
        self.assertEqual(reg.name_of(7), "ANARI_SEVEN")
        self.assertEqual(reg.size_of(DataType.FLOAT32), 0)

    def test_extended_keeps_original(self):
        """extended should return a copy and leave the source untouched."""
        reg = REGISTRY.extended([TypeInfo(type_id=90000, name="ANARI_VENDOR", size=5)])

        self.assertEqual(reg.size_of(90000), 5)
        self.assertEqual(reg.size_of(DataType.FLOAT32), 4)
        self.assertEqual(REGISTRY.size_of(90000), 0)

    def test_replacing_entry_updates_name_lookup(self):
        """Re-registering an id should drop its previous name."""
        reg = TypeRegistry([TypeInfo(type_id=1, name="ANARI_OLD", size=1)])
        reg.register(TypeInfo(type_id=1, name="ANARI_NEW", size=2))

        self.assertEqual(reg.lookup("NEW"), 1)
        with self.assertRaises(KeyError):
            reg.lookup("OLD")

    def test_negative_size_raises(self):
        """Negative sizes are rejected."""
        with self.assertRaises(ValueError):
            TypeRegistry([TypeInfo(type_id=1, name="ANARI_BAD", size=-1)])


class TestComponentLayout(unittest.TestCase):
    """Tests for component_layout()."""

    def test_numeric_types(self):
        """Numeric types map to a component count and dtype."""
        self.assertEqual(component_layout(DataType.FLOAT32_VEC3), (3, "f4"))
        self.assertEqual(component_layout(DataType.INT16_VEC2), (2, "i2"))
        self.assertEqual(component_layout(DataType.UINT64), (1, "u8"))
        self.assertEqual(component_layout(DataType.FLOAT32_MAT4), (16, "f4"))
        self.assertEqual(component_layout(DataType.BOOL), (1, "u1"))

    def test_non_numeric_types(self):
        """Handles, strings and unknown ids have no layout."""
        self.assertIsNone(component_layout(DataType.GEOMETRY))
        self.assertIsNone(component_layout(DataType.STRING))
        self.assertIsNone(component_layout(424242))


if __name__ == "__main__":
    unittest.main()
