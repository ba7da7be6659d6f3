from __future__ import annotations

import argparse
import logging
import random
import sys
from typing import List, Optional

from tablefill.analysis import DEFAULT_LINES, Analyser, apply_custom_schema
from tablefill.config import load_config, load_schema, postgres_creds, save_schema, validate_config
from tablefill.connector import DatabaseConnector, PostgresConnector
from tablefill.generator import Generator
from tablefill.randomizer import Randomizer
from tablefill.schema import DEFAULT_MAX_CHAR_LENGTH, Schema

logger = logging.getLogger("tablefill")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tablefill", description="Fill database tables with synthetic rows.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_connection_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", required=True, help="YAML file with the source.postgres connection block")
        p.add_argument("--env-file", default=None, help=".env file holding the database password")

    analyse = sub.add_parser("analyse", help="introspect the database and write a schema file")
    add_connection_args(analyse)
    analyse.add_argument("--custom-schema", default=None, help="schema fragment overriding the analysed one")
    analyse.add_argument("--output", default="schema.yaml")
    analyse.add_argument("--default-lines", type=int, default=DEFAULT_LINES)
    analyse.add_argument("--max-char-length", type=int, default=DEFAULT_MAX_CHAR_LENGTH)

    generate = sub.add_parser("generate", help="fill the tables described by a schema file")
    add_connection_args(generate)
    generate.add_argument("--schema", default="schema.yaml")
    generate.add_argument("--reset", action="store_true", help="empty each table before filling it")
    generate.add_argument("--seed", type=int, default=None)
    generate.add_argument("--table", action="append", default=None, help="only fill this table (repeatable)")
    return parser


def run_analyse(args: argparse.Namespace, connector: DatabaseConnector) -> Schema:
    schema = Analyser(
        connector,
        default_lines=args.default_lines,
        max_char_length=args.max_char_length,
    ).analyse()
    if args.custom_schema:
        schema = apply_custom_schema(schema, load_config(args.custom_schema))
    path = save_schema(schema, args.output)
    logger.info("schema written to %s", path)
    return schema


def run_generate(args: argparse.Namespace, connector: DatabaseConnector, randomizer: Randomizer) -> int:
    schema = load_schema(args.schema)
    tables = schema.tables
    if args.table:
        missing = set(args.table) - {t.name for t in tables}
        if missing:
            raise KeyError(f"Tables not in schema: {', '.join(sorted(missing))}")
        tables = tuple(t for t in tables if t.name in args.table)

    generator = Generator(connector, schema, randomizer=randomizer)
    aborted = 0
    for table in tables:
        result = generator.fill(table, args.reset)
        if result.aborted:
            aborted += 1
        logger.info(
            "%s: %s rows (+%s), target %s%s",
            result.table,
            f"{result.rows:,}",
            f"{result.inserted:,}",
            f"{result.target:,}",
            " [aborted]" if result.aborted else "",
        )
    if aborted:
        logger.warning("%s table(s) stopped before reaching their target", aborted)
    return aborted


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    connector = None
    try:
        cfg = load_config(args.config)
        validate_config(cfg)
        creds = postgres_creds(cfg, args.env_file)
        randomizer = Randomizer(seed=getattr(args, "seed", None))
        connector = PostgresConnector(creds, rng=random.Random(getattr(args, "seed", None)))
        if args.command == "analyse":
            run_analyse(args, connector)
        else:
            run_generate(args, connector, randomizer)
    except Exception as ex:
        logger.error("%s", ex, exc_info=args.verbose)
        return 1
    finally:
        if connector is not None:
            connector.destroy()
    return 0


if __name__ == "__main__":
    sys.exit(main())
