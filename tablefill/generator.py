from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from tablefill.connector import DatabaseConnector
from tablefill.randomizer import Randomizer
from tablefill.reporter import GenerationReporter
from tablefill.schema import INTEGER_RANGES, Column, ColumnGenerator, Schema, Table, parse_date_bound

BATCH_SIZE = 1000
NULL_PROBABILITY = 0.1
EPOCH = datetime(1970, 1, 1)

G = ColumnGenerator

STRING_GENERATORS = {G.VARCHAR, G.CHAR, G.BINARY, G.VARBINARY}


class ForeignKeyStarvation(RuntimeError):
    """A required foreign-key column has no eligible referenced values."""


@dataclass
class FillResult:
    table: str
    target: int
    rows: int
    inserted: int = 0
    aborted_reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.aborted_reason is not None


def compute_target(current_rows: int, table: Table) -> int:
    if table.add_lines is not None:
        target = current_rows + table.add_lines
        if table.max_lines is not None:
            target = min(target, table.max_lines)
        return target
    return table.max_lines or 0


class Generator:
    def __init__(
        self,
        connector: DatabaseConnector,
        schema: Schema,
        randomizer: Optional[Randomizer] = None,
        reporter: Optional[GenerationReporter] = None,
    ):
        self.connector = connector
        self.schema = schema
        self.random = randomizer or Randomizer()
        self.reporter = reporter or GenerationReporter()
        self._synthesizers: Dict[ColumnGenerator, Callable[[Column], Any]] = {
            G.BIT: self._bits,
            G.SET: self._bits,
            G.TINYINT: self._integer,
            G.SMALLINT: self._integer,
            G.MEDIUMINT: self._integer,
            G.INT: self._integer,
            G.INTEGER: self._integer,
            G.BIGINT: self._integer,
            G.YEAR: self._integer,
            G.BOOL: self._boolean,
            G.BOOLEAN: self._boolean,
            G.DECIMAL: self._real,
            G.DEC: self._real,
            G.FLOAT: self._real,
            G.DOUBLE: self._real,
            G.DATE: self._instant,
            G.DATETIME: self._instant,
            G.TIMESTAMP: self._instant,
            G.TIME: self._time,
            G.VARCHAR: self._bounded_string,
            G.CHAR: self._bounded_string,
            G.BINARY: self._bounded_string,
            G.VARBINARY: self._bounded_string,
            G.TINYBLOB: self._tiny_string,
            G.TEXT: self._long_string,
            G.MEDIUMTEXT: self._long_string,
            G.LONGTEXT: self._long_string,
            G.BLOB: self._long_string,
            G.MEDIUMBLOB: self._long_string,
            G.LONGBLOB: self._long_string,
            G.ENUM: self._enum,
        }

    def empty(self, table: Table) -> None:
        self.reporter.emptied(table.name)
        self.connector.empty_table(table)

    def fill(self, table: Table, reset: bool = False) -> FillResult:
        if reset:
            self.empty(table)
        self.reporter.started(table.name)
        self.before(table)
        result = self.generate_data(table)
        self.after(table)
        return result

    def before(self, table: Table) -> None:
        for query in table.before:
            self.connector.execute_raw_query(query)

    def after(self, table: Table) -> None:
        for query in table.after:
            self.connector.execute_raw_query(query)

    # -------------------------
    # Batch loop
    # -------------------------
    def generate_data(self, table: Table) -> FillResult:
        initial_rows = current_rows = self.connector.count_lines(table)
        target = compute_target(current_rows, table)
        aborted_reason = None

        while current_rows < target:
            previous_rows = current_rows
            batch_size = min(BATCH_SIZE, target - current_rows)

            try:
                pools = self.get_foreign_key_values(table, batch_size)
            except ForeignKeyStarvation as ex:
                aborted_reason = str(ex)
                self.reporter.aborted(table.name, aborted_reason)
                break

            rows = self.generate_rows(table, self._usable_rows(table, pools, batch_size), pools)
            current_rows += self.connector.insert(table.name, rows)
            if current_rows == previous_rows:
                aborted_reason = f"last run didn't insert any new rows in {table.name}"
                self.reporter.aborted(table.name, aborted_reason)
                break
            self.reporter.progress(table.name, current_rows, target)

        return FillResult(
            table=table.name,
            target=target,
            rows=current_rows,
            inserted=current_rows - initial_rows,
            aborted_reason=aborted_reason,
        )

    # -------------------------
    # Foreign keys
    # -------------------------
    def _pooled_columns(self, table: Table) -> List[Column]:
        return [
            c
            for c in table.columns
            if c.foreign_key and not c.options.auto_increment and c.values is None
        ]

    def get_foreign_key_values(self, table: Table, batch_size: int) -> Dict[str, List[Any]]:
        pools: Dict[str, List[Any]] = {}
        for column in self._pooled_columns(table):
            fk = column.foreign_key
            values = self.connector.get_values_for_foreign_keys(
                table.name,
                column.name,
                fk.table,
                fk.column,
                batch_size,
                column.options.unique,
                fk.where,
            )
            if not values and not column.options.nullable:
                raise ForeignKeyStarvation(
                    f"{table.name}: not enough values available for foreign key {fk.table}.{fk.column}"
                )
            pools[column.pool_key] = list(values)
        return pools

    def _usable_rows(self, table: Table, pools: Dict[str, List[Any]], batch_size: int) -> int:
        # a short pool on a required column shrinks the batch; nullable columns pad with NULL
        rows = batch_size
        for column in self._pooled_columns(table):
            if not column.options.nullable:
                rows = min(rows, len(pools[column.pool_key]))
        return rows

    # -------------------------
    # Row synthesis
    # -------------------------
    def generate_rows(self, table: Table, count: int, pools: Dict[str, List[Any]]) -> List[Dict[str, Any]]:
        rows = []
        for i in range(count):
            row: Dict[str, Any] = {}
            for column in table.columns:
                if column.options.auto_increment:
                    continue
                if column.values is not None:
                    row[column.name] = self.random.pick(column.values.pool(self.schema))
                    continue
                if column.foreign_key:
                    pool = pools[column.pool_key]
                    row[column.name] = pool[i] if i < len(pool) else None
                    continue
                row[column.name] = self.generate_value(column)
            rows.append(row)
        return rows

    def generate_value(self, column: Column) -> Any:
        if column.generator is G.ENUM:
            return self._enum(column)
        if column.generator in STRING_GENERATORS and self._wants_uuid(column):
            return self.random.random_uuid()
        value = self._synthesizers[column.generator](column)
        if column.options.nullable and self.random.chance(NULL_PROBABILITY):
            return None
        return value

    def _wants_uuid(self, column: Column) -> bool:
        return column.options.unique and (column.options.max or 0) >= 36

    def _char_ceiling(self, column: Column) -> int:
        if column.options.max is None:
            return self.schema.max_char_length
        return min(self.schema.max_char_length, int(column.options.max))

    def _bits(self, column: Column) -> str:
        return self.random.random_bit(column.options.max or 1)

    def _integer(self, column: Column) -> int:
        low, high = INTEGER_RANGES[column.generator]
        opts = column.options
        return self.random.random_int(low if opts.min is None else opts.min, high if opts.max is None else opts.max)

    def _boolean(self, column: Column) -> bool:
        # bool is an int subclass: still 0/1, but binds as a boolean
        return bool(self.random.random_int(0, 1))

    def _real(self, column: Column) -> float:
        opts = column.options
        return self.random.random_float(0 if opts.min is None else opts.min, 1 if opts.max is None else opts.max)

    def _instant(self, column: Column) -> datetime:
        low = parse_date_bound(column.options.min or self.schema.min_date) or EPOCH
        high = parse_date_bound(column.options.max) or datetime.now()
        return self.random.random_date(low, high)

    def _time(self, column: Column) -> str:
        hours = self.random.random_int(-838, 838)
        minutes = self.random.random_int(0, 59)
        seconds = self.random.random_int(0, 59)
        return f"{hours}:{minutes}:{seconds}"

    def _bounded_string(self, column: Column) -> str:
        high = self._char_ceiling(column)
        low = min(int(column.options.min or 0), high)
        return self.random.random_string(self.random.random_int(low, high))

    def _tiny_string(self, column: Column) -> str:
        return self.random.random_string(self.random.random_int(0, 10))

    def _long_string(self, column: Column) -> str:
        return self.random.random_string(self.random.random_int(0, self._char_ceiling(column)))

    def _enum(self, column: Column) -> int:
        high = int(column.options.max or 1)
        if column.options.nullable:
            return self.random.random_int(0, high)
        return self.random.random_int(1, high)
