"""
Unit tests for default attribute descriptions.
"""

from eavdb.schema.descriptions import describe_attribute


class TestDescribeAttribute:
    """Tests for describe_attribute()."""

    def test_known_name(self):
        assert describe_attribute("capacity") == "Maximum capacity of the room"
        assert describe_attribute("assigned_to") == "Staff assigned to handle request"

    def test_equipment_patterns(self):
        assert describe_attribute("equipment_0_name") == "Name of equipment item"
        assert describe_attribute("equipment_12_quantity") == "Quantity of equipment item"
        assert describe_attribute("equipment_3_condition") == "Condition of equipment item"
        assert describe_attribute("equipment_4") == "Equipment identifier"

    def test_amenity_pattern(self):
        assert describe_attribute("amenity_2") == "Amenity available"

    def test_typespec_split_on_capitals(self):
        assert describe_attribute("typespec_labStations") == "Room-specific: lab Stations"
        assert describe_attribute("typespec_seats") == "Room-specific: seats"

    def test_fallback(self):
        assert describe_attribute("office_hours") == "Attribute: office hours"
