"""Logging setup for fieldsurvey runs.

The logging configuration is a ``logging.config.dictConfig`` document
written in TOML. Its path is, in order: the ``cfg_path`` argument, the
FIELDSURVEY_LOG_CFG environment variable, or ``logging_config.toml`` at
the repo root. Relative ``filename`` entries of file handlers are taken
relative to the TOML file, so runs started from another directory log to
the same place.
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Optional, Union

import tomli

DEFAULT_LOG_CFG = Path(__file__).parent.parent.parent / "logging_config.toml"


def _resolve_handler_files(cfg: dict, base_dir: Path) -> dict:
    for handler in cfg.get("handlers", {}).values():
        filename = handler.get("filename")
        if filename and not Path(filename).is_absolute():
            handler["filename"] = str(base_dir / filename)
    return cfg


def setup_logging(cfg_path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Configure the ``fieldsurvey`` loggers.

    Without a config file the package logger gets a single NullHandler,
    so library use stays silent.

    Returns:
        Path of the config file applied, or None

    Raises:
        FileNotFoundError: If the path exists but is not a file
    """
    cfg_path = Path(cfg_path or os.getenv("FIELDSURVEY_LOG_CFG") or DEFAULT_LOG_CFG)

    if not cfg_path.exists():
        package_logger = logging.getLogger("fieldsurvey")
        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)
        package_logger.addHandler(logging.NullHandler())
        return None

    if not cfg_path.is_file():
        raise FileNotFoundError(f"Logging config not found at {cfg_path}")

    with cfg_path.open("rb") as f:
        cfg = tomli.load(f)

    logging.config.dictConfig(_resolve_handler_files(cfg, cfg_path.parent))
    return cfg_path
