from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SSH_DIR = Path("~/.ssh")

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SshTarget:
    host: str
    key_path: str
    user: str

    def build_command(self) -> list[str]:
        return ["ssh", "-i", self.key_path, f"{self.user}@{self.host}"]


def resolve_key_path(key_name: str) -> str:
    """Map a configured key to a file path.

    A bare name such as ``prod-key.pem`` lives in ``~/.ssh``; anything that
    already looks like a path is only ``~``-expanded.
    """
    path = Path(key_name)
    if path.is_absolute() or key_name.startswith("~") or len(path.parts) > 1:
        return str(path.expanduser())
    return str((DEFAULT_SSH_DIR / key_name).expanduser())


def launch_session(target: SshTarget) -> int:
    command = target.build_command()
    logger.info("Starting SSH session: %s", shlex.join(command))
    result = subprocess.run(command, check=False)
    if result.returncode != 0:
        logger.warning("SSH session to %s exited with code %d", target.host, result.returncode)
    return result.returncode
