"""Helpers shared by the RTMX command modules."""

import logging
from pathlib import Path
from typing import Tuple

from rtmx.config import RTMXConfig, load_config
from rtmx.database.csv_store import load_database
from rtmx.database.database import Database
from rtmx.errors import DatabaseIOError

logger = logging.getLogger("rtmx.cli")


def get_config(args) -> RTMXConfig:
    """Config from ``--config`` or discovery, cached on *args*."""
    config = getattr(args, "_config", None)
    if config is None:
        config = load_config(getattr(args, "config", None))
        args._config = config
    return config


def database_path(args) -> Path:
    """``--database`` if given, else the configured database path."""
    override = getattr(args, "database", None)
    if override:
        return Path(override)
    return get_config(args).database_path()


def load_project_database(args) -> Tuple[RTMXConfig, Database]:
    config = get_config(args)
    path = database_path(args)
    logger.debug("Loading database %s", path)
    return config, load_database(path)


def write_output(text: str, output_path=None) -> None:
    """Print *text*, or write it to *output_path* and say so."""
    if not output_path:
        print(text, end="" if text.endswith("\n") else "\n")
        return
    try:
        Path(output_path).write_text(text, encoding="utf-8")
    except OSError as exc:
        raise DatabaseIOError(f"failed to write output: {exc.strerror or exc}",
                              path=str(output_path)) from None
    print(f"Written to {output_path}")
