"""Logging setup for a node process.

Records carry the thread name: deliveries belong on the dispatch thread, and a
record from anywhere else points at a post() that should have been used.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"


def _level(value: Any, fallback: int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else fallback


def _rotating_file(path: Path, cfg: dict[str, Any]) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        path,
        maxBytes=int(cfg.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("backup_count", 3)),
        encoding="utf-8",
    )


def setup_logging(project_root: Path, settings: dict[str, Any]) -> Path:
    """Route all records to a rotating node log, optionally echoed to the console.

    settings["logging"]["level"] sets the root level. settings["logging"]["levels"]
    maps logger names to their own levels, e.g. {"ledgerbus.rpc.correlator": "DEBUG"}
    to trace request routing without debug output from the rest of the node.
    Handlers do not filter, so a per-logger override can go below the root level.
    Returns the log file path.
    """
    cfg = settings.get("logging", {})
    root_level = _level(cfg.get("level", "INFO"), logging.INFO)
    log_path = project_root / cfg.get("file", "data/logs/node.log")
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers = [_rotating_file(log_path, cfg)]
    if cfg.get("log_to_console", False):
        handlers.append(logging.StreamHandler())

    root = logging.getLogger()
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.setLevel(root_level)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)

    for name, value in (cfg.get("levels") or {}).items():
        logging.getLogger(name).setLevel(_level(value, root_level))
    return log_path
