from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from dateutil import parser as date_parser

DEFAULT_MAX_CHAR_LENGTH = 255


class ColumnGenerator(str, Enum):
    BIT = "bit"
    TINYINT = "tinyint"
    BOOL = "bool"
    BOOLEAN = "boolean"
    SMALLINT = "smallint"
    MEDIUMINT = "mediumint"
    INT = "int"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    DEC = "dec"
    FLOAT = "float"
    DOUBLE = "double"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    TIME = "time"
    YEAR = "year"
    VARCHAR = "varchar"
    CHAR = "char"
    BINARY = "binary"
    VARBINARY = "varbinary"
    TINYBLOB = "tinyblob"
    TEXT = "text"
    MEDIUMTEXT = "mediumtext"
    LONGTEXT = "longtext"
    BLOB = "blob"
    MEDIUMBLOB = "mediumblob"
    LONGBLOB = "longblob"
    SET = "set"
    ENUM = "enum"


DATE_GENERATORS = {ColumnGenerator.DATE, ColumnGenerator.DATETIME, ColumnGenerator.TIMESTAMP}

INTEGER_RANGES = {
    ColumnGenerator.TINYINT: (-128, 127),
    ColumnGenerator.SMALLINT: (-32768, 32767),
    ColumnGenerator.MEDIUMINT: (-8388608, 8388607),
    ColumnGenerator.INT: (-2147483648, 2147483647),
    ColumnGenerator.INTEGER: (-2147483648, 2147483647),
    ColumnGenerator.BIGINT: (-9223372036854775808, 9223372036854775807),
    ColumnGenerator.YEAR: (1901, 2155),
}


# -------------------------
# Values overrides
# -------------------------
@dataclass(frozen=True)
class LiteralValues:
    items: Tuple[Any, ...]

    def pool(self, schema: "Schema") -> Tuple[Any, ...]:
        return self.items

    def to_config(self) -> Any:
        return list(self.items)


@dataclass(frozen=True)
class NamedPoolValues:
    name: str

    def pool(self, schema: "Schema") -> Tuple[Any, ...]:
        return schema.values[self.name]

    def to_config(self) -> Any:
        return self.name


@dataclass(frozen=True)
class WeightedValues:
    """Each key is repeated `weight` times, so a uniform pick has probability weight / total."""

    weights: Tuple[Tuple[Any, int], ...]
    expanded: Tuple[Any, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self, "expanded", tuple(value for value, weight in self.weights for _ in range(weight))
        )

    def pool(self, schema: "Schema") -> Tuple[Any, ...]:
        return self.expanded

    def to_config(self) -> Any:
        return {value: weight for value, weight in self.weights}


Values = Union[LiteralValues, NamedPoolValues, WeightedValues]


def parse_values(raw: Any, where: str) -> Optional[Values]:
    if raw is None:
        return None
    if isinstance(raw, list):
        if not raw:
            raise ValueError(f"{where}: 'values' list must not be empty")
        return LiteralValues(tuple(raw))
    if isinstance(raw, str):
        return NamedPoolValues(raw)
    if isinstance(raw, dict):
        if not raw:
            raise ValueError(f"{where}: 'values' mapping must not be empty")
        weights: List[Tuple[Any, int]] = []
        for value, weight in raw.items():
            if not isinstance(weight, int) or isinstance(weight, bool) or weight <= 0:
                raise ValueError(f"{where}: weight for {value!r} must be a positive integer, got {weight!r}")
            weights.append((value, weight))
        return WeightedValues(tuple(weights))
    raise TypeError(f"{where}: 'values' must be a list, a pool name or a mapping of value to weight")


def parse_date_bound(value: Any) -> Any:
    """Dates and strings become naive datetimes; offset-aware values are shifted to UTC."""
    if isinstance(value, str):
        value = date_parser.parse(value)
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _config_scalar(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


# -------------------------
# Descriptors
# -------------------------
@dataclass(frozen=True)
class ForeignKeyRef:
    table: str
    column: str
    where: Optional[str] = None


@dataclass(frozen=True)
class ColumnOptions:
    nullable: bool = False
    unique: bool = False
    auto_increment: bool = False
    min: Any = None
    max: Any = None


@dataclass(frozen=True)
class Column:
    name: str
    generator: ColumnGenerator
    options: ColumnOptions = field(default_factory=ColumnOptions)
    foreign_key: Optional[ForeignKeyRef] = None
    values: Optional[Values] = None

    @property
    def pool_key(self) -> str:
        fk = self.foreign_key
        return f"{self.name}_{fk.table}_{fk.column}"

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], table_name: str) -> "Column":
        if not isinstance(raw, dict):
            raise TypeError(f"Column in table '{table_name}' must be a dictionary")
        if "name" not in raw:
            raise KeyError(f"Column in table '{table_name}' missing 'name'")
        where = f"{table_name}.{raw['name']}"
        try:
            generator = ColumnGenerator(str(raw.get("generator", "")).lower())
        except ValueError:
            raise ValueError(f"{where}: unknown generator {raw.get('generator')!r}") from None

        opts = raw.get("options") or {}
        min_value, max_value = opts.get("min"), opts.get("max")
        if generator in DATE_GENERATORS:
            min_value, max_value = parse_date_bound(min_value), parse_date_bound(max_value)
        options = ColumnOptions(
            nullable=bool(opts.get("nullable", False)),
            unique=bool(opts.get("unique", False)),
            auto_increment=bool(opts.get("autoIncrement", False)),
            min=min_value,
            max=max_value,
        )

        foreign_key = None
        fk = raw.get("foreignKey")
        if fk:
            if "table" not in fk or "column" not in fk:
                raise KeyError(f"{where}: 'foreignKey' needs 'table' and 'column'")
            foreign_key = ForeignKeyRef(table=fk["table"], column=fk["column"], where=fk.get("where"))

        return cls(
            name=raw["name"],
            generator=generator,
            options=options,
            foreign_key=foreign_key,
            values=parse_values(raw.get("values"), where),
        )

    def to_dict(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "nullable": self.options.nullable,
            "unique": self.options.unique,
            "autoIncrement": self.options.auto_increment,
        }
        if self.options.min is not None:
            options["min"] = _config_scalar(self.options.min)
        if self.options.max is not None:
            options["max"] = _config_scalar(self.options.max)
        out: Dict[str, Any] = {"name": self.name, "generator": self.generator.value, "options": options}
        if self.foreign_key:
            fk: Dict[str, Any] = {"table": self.foreign_key.table, "column": self.foreign_key.column}
            if self.foreign_key.where:
                fk["where"] = self.foreign_key.where
            out["foreignKey"] = fk
        if self.values is not None:
            out["values"] = self.values.to_config()
        return out


@dataclass(frozen=True)
class Table:
    name: str
    columns: Tuple[Column, ...] = ()
    before: Tuple[str, ...] = ()
    after: Tuple[str, ...] = ()
    max_lines: Optional[int] = None
    add_lines: Optional[int] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Table":
        if not isinstance(raw, dict):
            raise TypeError("Table entry must be a dictionary")
        if "name" not in raw:
            raise KeyError(f"Table {raw} missing 'name'")
        name = raw["name"]
        max_lines = raw.get("maxLines")
        add_lines = raw.get("addLines")
        # 'lines' is the deprecated spelling of maxLines
        if max_lines is None and add_lines is None:
            max_lines = raw.get("lines")
        if max_lines is None and add_lines is None:
            raise ValueError(f"Table '{name}' needs 'maxLines' or 'addLines'")
        return cls(
            name=name,
            columns=tuple(Column.from_dict(c, name) for c in raw.get("columns") or []),
            before=tuple(raw.get("before") or []),
            after=tuple(raw.get("after") or []),
            max_lines=None if max_lines is None else int(max_lines),
            add_lines=None if add_lines is None else int(add_lines),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name}
        if self.max_lines is not None:
            out["maxLines"] = self.max_lines
        if self.add_lines is not None:
            out["addLines"] = self.add_lines
        if self.before:
            out["before"] = list(self.before)
        if self.after:
            out["after"] = list(self.after)
        out["columns"] = [c.to_dict() for c in self.columns]
        return out


@dataclass(frozen=True)
class Schema:
    tables: Tuple[Table, ...] = ()
    values: Dict[str, Tuple[Any, ...]] = field(default_factory=dict)
    max_char_length: int = DEFAULT_MAX_CHAR_LENGTH
    min_date: Optional[datetime] = None

    def get_table(self, name: str) -> Optional[Table]:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Schema":
        if not isinstance(raw, dict):
            raise ValueError("Schema root must be a dictionary")
        tables = raw.get("tables")
        if not isinstance(tables, list):
            raise ValueError("'tables' must be a list")

        pools: Dict[str, Tuple[Any, ...]] = {}
        for pool_name, items in (raw.get("values") or {}).items():
            if not isinstance(items, list) or not items:
                raise ValueError(f"Value pool '{pool_name}' must be a non-empty list")
            pools[pool_name] = tuple(items)

        schema = cls(
            tables=tuple(Table.from_dict(t) for t in tables),
            values=pools,
            max_char_length=int(raw.get("maxCharLength", DEFAULT_MAX_CHAR_LENGTH)),
            min_date=parse_date_bound(raw.get("minDate")),
        )
        schema.check_pool_references()
        return schema

    def check_pool_references(self) -> None:
        for table in self.tables:
            for column in table.columns:
                if isinstance(column.values, NamedPoolValues) and column.values.name not in self.values:
                    raise ValueError(
                        f"{table.name}.{column.name}: unknown value pool '{column.values.name}'"
                    )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"maxCharLength": self.max_char_length}
        if self.min_date is not None:
            out["minDate"] = self.min_date.isoformat()
        out["values"] = {k: list(v) for k, v in self.values.items()}
        out["tables"] = [t.to_dict() for t in self.tables]
        return out
