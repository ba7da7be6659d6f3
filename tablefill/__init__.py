"""Fill relational database tables with synthetic rows described by a schema file."""

__version__ = "0.1.0"

from tablefill.connector import DatabaseConnector, PostgresConnector, PostgresCreds
from tablefill.generator import FillResult, Generator
from tablefill.randomizer import Randomizer
from tablefill.reporter import GenerationReporter
from tablefill.schema import Column, ColumnGenerator, Schema, Table

__all__ = [
    "Column",
    "ColumnGenerator",
    "DatabaseConnector",
    "FillResult",
    "GenerationReporter",
    "Generator",
    "PostgresConnector",
    "PostgresCreds",
    "Randomizer",
    "Schema",
    "Table",
]
