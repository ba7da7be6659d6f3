from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Set

from tablefill.connector import ColumnInfo, DatabaseConnector, ForeignKeyInfo
from tablefill.schema import (
    DEFAULT_MAX_CHAR_LENGTH,
    INTEGER_RANGES,
    Column,
    ColumnGenerator,
    ColumnOptions,
    ForeignKeyRef,
    LiteralValues,
    Schema,
    Table,
)

logger = logging.getLogger(__name__)

G = ColumnGenerator

DEFAULT_LINES = 1000

INTEGER_TYPES = {
    "smallint": G.SMALLINT,
    "integer": G.INTEGER,
    "bigint": G.BIGINT,
}

SIMPLE_TYPES = {
    "boolean": G.BOOLEAN,
    "date": G.DATE,
    "timestamp without time zone": G.TIMESTAMP,
    "timestamp with time zone": G.TIMESTAMP,
    "interval": G.TIME,
    "text": G.TEXT,
    "bytea": G.BLOB,
}


# -------------------------
# Dependency ordering
# -------------------------
def topo_sort_tables(tables: List[str], fks: List[ForeignKeyInfo]) -> List[str]:
    """Referenced tables first. Tables caught in a cycle are appended at the end, sorted."""
    deps: Dict[str, Set[str]] = {t: set() for t in tables}
    rdeps: Dict[str, Set[str]] = {t: set() for t in tables}

    for fk in fks:
        if fk.table == fk.ref_table:
            continue
        if fk.table in deps and fk.ref_table in deps:
            deps[fk.table].add(fk.ref_table)
            rdeps[fk.ref_table].add(fk.table)

    q = sorted([t for t in tables if not deps[t]])
    out: List[str] = []

    while q:
        n = q.pop(0)
        out.append(n)
        for m in sorted(rdeps[n]):
            deps[m].discard(n)
            if not deps[m] and m not in out and m not in q:
                q.append(m)
        q.sort()

    remaining = [t for t in tables if t not in out]
    return out + sorted(remaining)


# -------------------------
# Type mapping
# -------------------------
def column_from_info(
    info: ColumnInfo,
    unique_columns: Set[str],
    enums: Dict[str, List[str]],
    max_char_length: int = DEFAULT_MAX_CHAR_LENGTH,
    foreign_key: Optional[ForeignKeyRef] = None,
) -> Optional[Column]:
    """Describe one introspected column, or None when its type has no generator."""
    dt = info.data_type.lower()
    udt = info.udt_name.lower()
    unique = info.column in unique_columns
    auto_increment = info.is_identity or (info.column_default or "").startswith("nextval(")
    low: Any = None
    high: Any = None
    values = None

    if udt in enums:
        generator = G.ENUM
        high = len(enums[udt])
        values = LiteralValues(tuple(enums[udt]))
    elif dt in INTEGER_TYPES:
        generator = INTEGER_TYPES[dt]
        low, high = INTEGER_RANGES[generator]
    elif dt in {"numeric", "decimal"}:
        generator = G.DECIMAL
        if info.numeric_precision:
            scale = info.numeric_scale or 0
            high = 10 ** (info.numeric_precision - scale) - 10 ** -scale
            low = -high
        else:
            low, high = 0, 1000
    elif dt == "real":
        generator, low, high = G.FLOAT, 0, 1000
    elif dt == "double precision":
        generator, low, high = G.DOUBLE, 0, 1000
    elif dt == "character varying":
        generator, low, high = G.VARCHAR, 0, info.char_max_len or max_char_length
    elif dt == "character":
        generator, low, high = G.CHAR, 0, info.char_max_len or 1
    elif dt == "uuid":
        # a unique char(36) is always filled with version-4 UUIDs
        generator, low, high, unique = G.CHAR, 36, 36, True
    elif dt in {"bit", "bit varying"}:
        generator, high = G.BIT, info.char_max_len or 1
    elif dt in SIMPLE_TYPES:
        generator = SIMPLE_TYPES[dt]
        if generator in {G.TEXT, G.BLOB}:
            high = max_char_length
    else:
        logger.warning("%s.%s: unsupported type %s, column skipped", info.table, info.column, info.data_type)
        return None

    return Column(
        name=info.column,
        generator=generator,
        options=ColumnOptions(
            nullable=info.is_nullable,
            unique=unique,
            auto_increment=auto_increment,
            min=low,
            max=high,
        ),
        foreign_key=foreign_key,
        values=values,
    )


class Analyser:
    def __init__(
        self,
        connector: DatabaseConnector,
        default_lines: int = DEFAULT_LINES,
        max_char_length: int = DEFAULT_MAX_CHAR_LENGTH,
    ):
        self.connector = connector
        self.default_lines = default_lines
        self.max_char_length = max_char_length

    def analyse(self) -> Schema:
        tables = self.connector.get_tables_information()
        fks = {t: self.connector.get_foreign_keys(t) for t in tables}
        load_order = topo_sort_tables(tables, [fk for table_fks in fks.values() for fk in table_fks])
        enums = self.connector.get_enum_values()

        logger.info("Tables: %s", len(tables))
        logger.info("Enums detected: %s", len(enums))

        return Schema(
            tables=tuple(self.describe_table(t, fks[t], enums) for t in load_order),
            max_char_length=self.max_char_length,
        )

    def describe_table(self, table: str, fks: List[ForeignKeyInfo], enums: Dict[str, List[str]]) -> Table:
        fk_map = {fk.column: ForeignKeyRef(fk.ref_table, fk.ref_column) for fk in fks}
        unique_columns = self.connector.get_unique_columns(table)
        columns = []
        for info in self.connector.get_columns_information(table):
            column = column_from_info(
                info, unique_columns, enums, self.max_char_length, foreign_key=fk_map.get(info.column)
            )
            if column is not None:
                columns.append(column)
        logger.debug("%s: %s columns", table, len(columns))
        return Table(name=table, columns=tuple(columns), max_lines=self.default_lines)


# -------------------------
# Custom schema
# -------------------------
LINE_KEYS = ("maxLines", "addLines", "lines")


def _merge_column(base: Dict[str, Any], custom: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in custom.items():
        if key == "options" and isinstance(value, dict):
            merged["options"] = {**base.get("options", {}), **value}
        else:
            merged[key] = value
    return merged


def _merge_table(base: Dict[str, Any], custom: Dict[str, Any]) -> Dict[str, Any]:
    merged = {k: v for k, v in base.items() if k != "columns"}
    if any(k in custom for k in LINE_KEYS):
        for k in LINE_KEYS:
            merged.pop(k, None)
    for key, value in custom.items():
        if key not in {"name", "columns"}:
            merged[key] = value

    columns = [dict(c) for c in base.get("columns", [])]
    index = {c["name"]: i for i, c in enumerate(columns)}
    for custom_column in custom.get("columns") or []:
        name = custom_column.get("name")
        if name in index:
            columns[index[name]] = _merge_column(columns[index[name]], custom_column)
        else:
            columns.append(custom_column)
    merged["columns"] = columns
    return merged


def apply_custom_schema(schema: Schema, custom: Dict[str, Any]) -> Schema:
    """
    Overlay a user supplied schema fragment on an analysed schema.

    Tables and columns are matched by name. Column options are merged key by
    key; any other key (generator, values, foreignKey) replaces the analysed
    one. Setting any of maxLines/addLines/lines on a table replaces all three.
    """
    raw = copy.deepcopy(schema.to_dict())
    if "maxCharLength" in custom:
        raw["maxCharLength"] = custom["maxCharLength"]
    if "minDate" in custom:
        raw["minDate"] = custom["minDate"]
    raw["values"].update(custom.get("values") or {})

    index = {t["name"]: i for i, t in enumerate(raw["tables"])}
    for custom_table in custom.get("tables") or []:
        name = custom_table.get("name")
        if name not in index:
            logger.warning("custom schema: table %s not found in database, ignored", name)
            continue
        raw["tables"][index[name]] = _merge_table(raw["tables"][index[name]], custom_table)

    return Schema.from_dict(raw)
