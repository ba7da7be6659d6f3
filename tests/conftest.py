from unittest.mock import MagicMock

import pytest

from tablefill.generator import Generator
from tablefill.randomizer import Randomizer
from tablefill.reporter import GenerationReporter
from tablefill.schema import Schema


class FakeConnector:
    """In-memory stand-in for a DatabaseConnector; every call is recorded."""

    def __init__(self, rows: int = 0):
        self.count_lines = MagicMock(return_value=rows)
        self.destroy = MagicMock()
        self.empty_table = MagicMock()
        self.execute_raw_query = MagicMock()
        self.get_columns_information = MagicMock(return_value=[])
        self.get_foreign_keys = MagicMock(return_value=[])
        self.get_tables_information = MagicMock(return_value=[])
        self.get_unique_columns = MagicMock(return_value=set())
        self.get_enum_values = MagicMock(return_value={})
        self.get_values_for_foreign_keys = MagicMock(return_value=[])
        self.insert = MagicMock(side_effect=lambda table_name, rows: len(rows))

    def inserted_batches(self):
        return [c.args[1] for c in self.insert.call_args_list]


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def reporter():
    return MagicMock(spec=GenerationReporter)


@pytest.fixture
def make_generator(connector, reporter):
    def _make(schema: Schema = None, seed: int = 1234):
        return Generator(connector, schema or Schema(), randomizer=Randomizer(seed=seed), reporter=reporter)

    return _make
