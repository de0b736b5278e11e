# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/logging/log.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass(frozen=True)
class RunLogs:
    """Where one configuration pass leaves its trace."""
    logger: logging.Logger
    run_id: str
    log_path: Path        # human readable DEBUG trace
    events_path: Path     # JSONL lifecycle events, one object per line


def default_log_dir() -> Path:
    return Path.home() / ".consulboot" / "logs"


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "consulboot",
    role: Optional[str] = None,
    verbose: bool = False,
) -> RunLogs:
    """
    Initializes one run:
      - <name>-<ts>-<run_id>.log with the full DEBUG trace
      - console at INFO (DEBUG with --debug)
      - the sibling .jsonl path the event observers append to

    Re-initializing replaces the handlers of the previous run.
    """
    run_id = str(uuid.uuid4())

    base_dir = base_dir or default_log_dir()
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    stem = f"{name}-{ts}-{run_id}"
    log_path = base_dir / f"{stem}.log"
    events_path = base_dir / f"{stem}.jsonl"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(formatter)

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info(f"=== consulboot run started ({role or 'unspecified role'}) ===")
    logger.info(f"run_id={run_id}")
    logger.debug(f"log_file={log_path} events_file={events_path}")

    return RunLogs(logger=logger, run_id=run_id, log_path=log_path, events_path=events_path)
