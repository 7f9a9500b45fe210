"""
Unit tests for partial-update records.
"""

import pytest
from pydantic import ValidationError

from designer.schemaboard_server.model import (
    ColumnUpdate,
    RelationshipUpdate,
    RelationType,
    TableUpdate,
    TypeCategory,
)


class TestPartialUpdates:
    """Tests for PartialUpdate subclasses."""

    def test_changes_only_contain_supplied_fields(self):
        patch = TableUpdate(name="users")
        assert patch.changes() == {"name": "users"}

    def test_empty_patch(self):
        assert TableUpdate().is_empty()
        assert TableUpdate().changes() == {}

    def test_explicit_none_is_kept_for_optional_fields(self):
        patch = ColumnUpdate(default_value=None)
        assert patch.changes() == {"default_value": None}

    def test_null_rejected_for_required_fields(self):
        with pytest.raises(ValidationError):
            ColumnUpdate(name=None)
        with pytest.raises(ValidationError):
            TableUpdate(position_x=None)

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            TableUpdate(colour="red")
        with pytest.raises(ValidationError):
            ColumnUpdate(table_id="t2")

    def test_enums_become_values(self):
        assert ColumnUpdate(type_category="uuid").changes() == {"type_category": "uuid"}
        patch = RelationshipUpdate(relation_type=RelationType.MANY_TO_MANY)
        assert patch.changes() == {"relation_type": "many-to-many"}

    def test_invalid_enum_value(self):
        with pytest.raises(ValidationError):
            ColumnUpdate(type_category="currency")

    def test_type_category_parsed(self):
        assert ColumnUpdate(type_category="json").type_category is TypeCategory.JSON
