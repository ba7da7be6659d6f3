import pytest

from tablefill.analysis import Analyser, apply_custom_schema, column_from_info, topo_sort_tables
from tablefill.connector import ColumnInfo, ForeignKeyInfo
from tablefill.schema import INTEGER_RANGES, ColumnGenerator, ForeignKeyRef, LiteralValues, NamedPoolValues

G = ColumnGenerator


def info(column, data_type, udt_name=None, nullable=False, **kwargs):
    return ColumnInfo(
        table="t",
        column=column,
        data_type=data_type,
        udt_name=udt_name or data_type,
        is_nullable=nullable,
        **kwargs,
    )


def test_topo_sort_puts_referenced_tables_first():
    fks = [
        ForeignKeyInfo("orders", "user_id", "users", "id"),
        ForeignKeyInfo("order_items", "order_id", "orders", "id"),
        ForeignKeyInfo("order_items", "product_id", "products", "id"),
        ForeignKeyInfo("users", "manager_id", "users", "id"),
    ]

    order = topo_sort_tables(["order_items", "orders", "products", "users"], fks)

    assert order.index("users") < order.index("orders") < order.index("order_items")
    assert order.index("products") < order.index("order_items")


def test_topo_sort_appends_cycles():
    fks = [ForeignKeyInfo("a", "b_id", "b", "id"), ForeignKeyInfo("b", "a_id", "a", "id")]

    assert topo_sort_tables(["b", "a", "c"], fks) == ["c", "a", "b"]


@pytest.mark.parametrize(
    "data_type, expected, low, high",
    [
        ("smallint", G.SMALLINT, -32768, 32767),
        ("integer", G.INTEGER, -2147483648, 2147483647),
        ("bigint", G.BIGINT, -9223372036854775808, 9223372036854775807),
        ("real", G.FLOAT, 0, 1000),
        ("double precision", G.DOUBLE, 0, 1000),
        ("boolean", G.BOOLEAN, None, None),
        ("date", G.DATE, None, None),
        ("timestamp with time zone", G.TIMESTAMP, None, None),
        ("interval", G.TIME, None, None),
        ("text", G.TEXT, None, 255),
        ("bytea", G.BLOB, None, 255),
    ],
)
def test_type_mapping(data_type, expected, low, high):
    column = column_from_info(info("c", data_type), set(), {})

    assert column.generator is expected
    assert column.options.min == low
    assert column.options.max == high


@pytest.mark.parametrize("data_type", ["smallint", "integer", "bigint"])
def test_integer_bounds_match_what_the_generator_draws_from(data_type):
    column = column_from_info(info("c", data_type), set(), {})

    assert (column.options.min, column.options.max) == INTEGER_RANGES[column.generator]


def test_numeric_bounds_follow_precision_and_scale():
    column = column_from_info(info("c", "numeric", numeric_precision=5, numeric_scale=2), set(), {})

    assert column.generator is G.DECIMAL
    assert column.options.max == pytest.approx(999.99)
    assert column.options.min == pytest.approx(-999.99)


def test_varchar_length_and_uniqueness():
    column = column_from_info(info("email", "character varying", char_max_len=80), {"email"}, {})

    assert column.generator is G.VARCHAR
    assert column.options.max == 80
    assert column.options.unique


def test_uuid_columns_are_unique_char36():
    column = column_from_info(info("c", "uuid"), set(), {})

    assert column.generator is G.CHAR
    assert column.options.unique
    assert column.options.max == 36


def test_enum_columns_get_their_labels():
    column = column_from_info(info("status", "USER-DEFINED", "order_status"), set(), {"order_status": ["new", "paid"]})

    assert column.generator is G.ENUM
    assert column.values == LiteralValues(("new", "paid"))


def test_auto_increment_detection():
    serial = column_from_info(info("id", "integer", column_default="nextval('t_id_seq'::regclass)"), set(), {})
    identity = column_from_info(info("id", "bigint", is_identity=True), set(), {})
    plain = column_from_info(info("n", "integer", column_default="0"), set(), {})

    assert serial.options.auto_increment
    assert identity.options.auto_increment
    assert not plain.options.auto_increment


def test_unsupported_types_are_skipped():
    assert column_from_info(info("doc", "jsonb"), set(), {}) is None


def test_analyser_builds_ordered_schema(connector):
    connector.get_tables_information.return_value = ["orders", "users"]
    connector.get_foreign_keys.side_effect = lambda t: (
        [ForeignKeyInfo("orders", "user_id", "users", "id")] if t == "orders" else []
    )
    connector.get_columns_information.side_effect = lambda t: {
        "users": [
            ColumnInfo("users", "id", "integer", "int4", False, is_identity=True),
            ColumnInfo("users", "meta", "jsonb", "jsonb", True),
        ],
        "orders": [
            ColumnInfo("orders", "id", "integer", "int4", False, is_identity=True),
            ColumnInfo("orders", "user_id", "integer", "int4", True),
        ],
    }[t]

    schema = Analyser(connector, default_lines=50).analyse()

    assert [t.name for t in schema.tables] == ["users", "orders"]
    assert [c.name for c in schema.get_table("users").columns] == ["id"]
    orders = schema.get_table("orders")
    assert orders.max_lines == 50
    assert orders.columns[1].foreign_key == ForeignKeyRef("users", "id")
    assert orders.columns[1].options.nullable


def test_custom_schema_overrides_by_name(connector):
    connector.get_tables_information.return_value = ["users"]
    connector.get_columns_information.return_value = [
        ColumnInfo("users", "id", "integer", "int4", False, is_identity=True),
        ColumnInfo("users", "country", "character varying", "varchar", False, char_max_len=2),
        ColumnInfo("users", "age", "smallint", "int2", True),
    ]
    schema = Analyser(connector).analyse()

    custom = {
        "maxCharLength": 64,
        "values": {"countries": ["FR", "US"]},
        "tables": [
            {
                "name": "users",
                "addLines": 10,
                "before": ["SET session_replication_role = replica"],
                "columns": [
                    {"name": "country", "values": "countries"},
                    {"name": "age", "options": {"min": 18, "max": 99}},
                    {"name": "nickname", "generator": "varchar", "options": {"max": 12}},
                ],
            },
            {"name": "ghost", "maxLines": 1},
        ],
    }

    merged = apply_custom_schema(schema, custom)

    users = merged.get_table("users")
    assert merged.max_char_length == 64
    assert merged.values["countries"] == ("FR", "US")
    assert users.add_lines == 10
    assert users.max_lines is None
    assert users.before == ("SET session_replication_role = replica",)
    columns = {c.name: c for c in users.columns}
    assert columns["country"].values == NamedPoolValues("countries")
    assert columns["age"].options.min == 18
    assert columns["age"].options.nullable
    assert columns["nickname"].options.max == 12
    assert merged.get_table("ghost") is None
