from datetime import datetime

import pytest

from tablefill.schema import (
    ColumnGenerator,
    LiteralValues,
    NamedPoolValues,
    Schema,
    Table,
    WeightedValues,
    parse_date_bound,
)


def test_legacy_lines_maps_to_max_lines():
    table = Table.from_dict({"name": "t", "lines": 30, "columns": []})

    assert table.max_lines == 30
    assert table.add_lines is None


def test_legacy_lines_ignored_when_new_fields_present():
    table = Table.from_dict({"name": "t", "lines": 30, "addLines": 5, "columns": []})

    assert table.max_lines is None
    assert table.add_lines == 5


def test_table_needs_a_line_count():
    with pytest.raises(ValueError, match="maxLines"):
        Table.from_dict({"name": "t", "columns": []})


def test_unknown_generator_is_rejected():
    with pytest.raises(ValueError, match="unknown generator"):
        Table.from_dict({"name": "t", "maxLines": 1, "columns": [{"name": "c", "generator": "geometry"}]})


def test_column_fields_are_parsed():
    table = Table.from_dict(
        {
            "name": "orders",
            "maxLines": 1,
            "before": ["SET x = 1"],
            "columns": [
                {
                    "name": "created",
                    "generator": "DATETIME",
                    "options": {"nullable": True, "min": "2021-03-04", "max": "2021-03-05"},
                },
                {
                    "name": "user_id",
                    "generator": "int",
                    "options": {"unique": True, "autoIncrement": False},
                    "foreignKey": {"table": "users", "column": "id", "where": "active"},
                },
            ],
        }
    )

    created, user_id = table.columns
    assert created.generator is ColumnGenerator.DATETIME
    assert created.options.nullable
    assert created.options.min == datetime(2021, 3, 4)
    assert user_id.options.unique
    assert user_id.foreign_key.where == "active"
    assert user_id.pool_key == "user_id_users_id"
    assert table.before == ("SET x = 1",)


def test_values_variants():
    columns = Table.from_dict(
        {
            "name": "t",
            "maxLines": 1,
            "columns": [
                {"name": "a", "generator": "varchar", "values": ["x", "y"]},
                {"name": "b", "generator": "varchar", "values": "colors"},
                {"name": "c", "generator": "varchar", "values": {"x": 2, "y": 1}},
            ],
        }
    ).columns

    assert columns[0].values == LiteralValues(("x", "y"))
    assert columns[1].values == NamedPoolValues("colors")
    assert isinstance(columns[2].values, WeightedValues)
    assert columns[2].values.expanded == ("x", "x", "y")


@pytest.mark.parametrize("values", [[], {}, {"x": 0}, {"x": "2"}, 12])
def test_bad_values_are_rejected(values):
    with pytest.raises((ValueError, TypeError)):
        Table.from_dict({"name": "t", "maxLines": 1, "columns": [{"name": "c", "generator": "int", "values": values}]})


def test_unknown_pool_reference_is_rejected():
    with pytest.raises(ValueError, match="unknown value pool"):
        Schema.from_dict(
            {"tables": [{"name": "t", "maxLines": 1, "columns": [{"name": "c", "generator": "int", "values": "nope"}]}]}
        )


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2020-01-01", datetime(2020, 1, 1)),
        ("2020-01-01T00:00:00Z", datetime(2020, 1, 1)),
        ("2020-01-01T02:00:00+02:00", datetime(2020, 1, 1)),
        (None, None),
    ],
)
def test_date_bounds_are_naive_utc(raw, expected):
    value = parse_date_bound(raw)

    assert value == expected
    assert value is None or value.tzinfo is None


def test_aware_column_bounds_are_stored_naive():
    table = Table.from_dict(
        {
            "name": "t",
            "maxLines": 1,
            "columns": [{"name": "c", "generator": "timestamp", "options": {"min": "2020-06-01T08:30:00-04:00"}}],
        }
    )

    assert table.columns[0].options.min == datetime(2020, 6, 1, 12, 30)


def test_schema_defaults_and_lookup():
    schema = Schema.from_dict({"tables": [{"name": "a", "maxLines": 1}, {"name": "b", "addLines": 2}]})

    assert schema.max_char_length == 255
    assert schema.min_date is None
    assert schema.get_table("b").add_lines == 2
    assert schema.get_table("zzz") is None


def test_schema_survives_a_dict_round_trip():
    raw = {
        "maxCharLength": 40,
        "minDate": "2000-01-01",
        "values": {"colors": ["red"]},
        "tables": [
            {
                "name": "t",
                "maxLines": 3,
                "after": ["VACUUM"],
                "columns": [
                    {"name": "c", "generator": "date", "options": {"min": "2001-01-01"}},
                    {"name": "d", "generator": "varchar", "values": {"x": 2}},
                    {"name": "e", "generator": "varchar", "values": "colors"},
                ],
            }
        ],
    }
    schema = Schema.from_dict(raw)

    assert Schema.from_dict(schema.to_dict()) == schema
