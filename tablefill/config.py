from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from tablefill.connector import PostgresCreds
from tablefill.schema import Schema

PathLike = Union[str, Path]


def load_config(config_path: PathLike) -> Dict[str, Any]:
    """Read a YAML (or JSON, which YAML parses as well) file into a dict."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
            return config or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Config file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")


def validate_config(cfg: Dict[str, Any]) -> None:
    if not isinstance(cfg, dict):
        raise ValueError("Config root must be a dictionary")
    if "source" not in cfg:
        raise KeyError("Missing top-level key: source")

    source = cfg["source"]
    if not isinstance(source, dict) or not source:
        raise ValueError("'source' must be a non-empty dictionary")
    if "postgres" not in source:
        raise KeyError("Missing 'postgres' in 'source'")

    conn = source["postgres"]
    if not isinstance(conn, dict):
        raise TypeError("Source 'postgres' must be a dictionary")
    for key in ("host", "database", "user"):
        if key not in conn:
            raise KeyError(f"Missing '{key}' in source 'postgres'")


def postgres_creds(cfg: Dict[str, Any], env_file: Optional[PathLike] = None) -> PostgresCreds:
    """
    Build credentials from a validated config. The password never lives in the
    config file: `password_env` names the environment variable holding it
    (default POSTGRES_PASSWORD), optionally loaded from a .env file first.
    """
    if env_file is not None:
        load_dotenv(dotenv_path=env_file, override=True)
    pg_cfg = cfg["source"]["postgres"]
    return PostgresCreds(
        host=pg_cfg.get("host", "localhost"),
        port=str(pg_cfg.get("port", 5432)),
        dbname=pg_cfg.get("database", ""),
        user=pg_cfg.get("user", ""),
        password=os.getenv(pg_cfg.get("password_env", "POSTGRES_PASSWORD")),
        schema=pg_cfg.get("schema") or "public",
    )


def load_schema(path: PathLike) -> Schema:
    return Schema.from_dict(load_config(path))


def save_schema(schema: Schema, path: PathLike) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(schema.to_dict(), f, sort_keys=False, allow_unicode=True)
    return path
