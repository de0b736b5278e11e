# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/deploy/writer.py

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from consulboot.errors import ArtifactWriteError, SupervisorReloadError
from consulboot.render.composer import RenderedConfig

log = logging.getLogger("consulboot")


def owner_of(path: Path) -> str:
    """Name of the user owning path; the default run-as user for consul."""
    try:
        return path.owner()
    except (OSError, KeyError) as exc:
        raise ArtifactWriteError(f"Cannot determine owner of {path}: {exc}") from exc


def _stage(path: Path, text: str) -> Path:
    """Write text to a temp file beside path; the caller renames or unlinks it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.chmod(tmp, 0o644)
    except OSError:
        Path(tmp).unlink(missing_ok=True)
        raise
    return Path(tmp)


class ArtifactWriter:
    """
    Persists a complete RenderedConfig and reloads supervisord.
    Never called with a partial render.
    """

    def __init__(
        self,
        *,
        agent_config_path: Path,
        supervisor_config_path: Path,
        user: str,
        chown: bool = True,
    ):
        self.agent_config_path = agent_config_path
        self.supervisor_config_path = supervisor_config_path
        self.user = user
        self.chown = chown

    def write(self, rendered: RenderedConfig) -> List[Path]:
        """
        Stage every artifact (and chown it) before renaming any of them into
        place, so a failure leaves the target paths untouched.
        """
        staged: List[Tuple[Path, Path]] = []
        try:
            if rendered.agent_config is not None:
                log.info(f"Writing Consul agent config to {self.agent_config_path}")
                tmp = _stage(self.agent_config_path, rendered.agent_config)
                staged.append((tmp, self.agent_config_path))
                if self.chown:
                    shutil.chown(tmp, user=self.user, group=self.user)

            log.info(f"Writing supervisor config to {self.supervisor_config_path}")
            tmp = _stage(self.supervisor_config_path, rendered.supervisor_config)
            staged.append((tmp, self.supervisor_config_path))

            for tmp, target in staged:
                os.replace(tmp, target)
        except (OSError, LookupError) as exc:
            for tmp, _ in staged:
                tmp.unlink(missing_ok=True)
            raise ArtifactWriteError(f"Failed to write artifacts: {exc}") from exc

        return [target for _, target in staged]

    def reload_supervisor(self, supervisorctl: Optional[str] = None) -> str:
        """supervisorctl reread && supervisorctl update; returns combined stdout."""
        binary = supervisorctl or "supervisorctl"
        outputs = []
        for sub in ("reread", "update"):
            cmd = [binary, sub]
            log.debug(f"+ {' '.join(cmd)}")
            try:
                cp = subprocess.run(cmd, capture_output=True, text=True, check=False)
            except OSError as exc:
                raise SupervisorReloadError(f"Failed to run {' '.join(cmd)}: {exc}") from exc
            if cp.returncode != 0:
                raise SupervisorReloadError(
                    f"{' '.join(cmd)} failed (rc={cp.returncode}): {cp.stderr.strip()}"
                )
            outputs.append(cp.stdout.strip())
        log.info("Reloaded supervisor configuration")
        return "\n".join(o for o in outputs if o)
