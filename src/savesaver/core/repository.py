"""Git client used by the backup engine."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


class GitRepository:
    """Thin wrapper over the git command line for one working tree.

    Each method runs a single git command in the working tree and returns
    the completed process. A non-zero exit status is not raised: callers
    inspect ``returncode``, ``stdout`` and ``stderr`` themselves. Only a
    missing executable surfaces as ``OSError``.

    Attributes:
        path (Path): Working tree the commands run in.
        executable (str): Git executable to invoke.
    """

    def __init__(self, path: Path, executable: str = "git"):
        """Initialize repository."""
        self.path = Path(path)
        self.executable = executable

    def __str__(self) -> str:
        """Return string representation."""
        return f"GitRepository({self.path})"

    def __repr__(self) -> str:
        """Return string representation."""
        return self.__str__()

    def _run_git(self, *args: str) -> subprocess.CompletedProcess[str]:
        """Run a Git command and return the completed process."""
        command: List[str] = [self.executable, *args]
        logger.debug("Running %s in %s", " ".join(command), self.path)
        result = subprocess.run(
            command,
            cwd=self.path,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            logger.debug("%s exited with %d: %s", command[1], result.returncode, result.stderr)
        return result

    def init(self) -> subprocess.CompletedProcess[str]:
        """Create an empty repository."""
        return self._run_git("init")

    def remote_add(self, url: str, name: str = "origin") -> subprocess.CompletedProcess[str]:
        """Register a remote."""
        return self._run_git("remote", "add", name, url)

    def fetch(self) -> subprocess.CompletedProcess[str]:
        """Fetch all branches from the default remote."""
        return self._run_git("fetch")

    def checkout_orphan(self, branch: str) -> subprocess.CompletedProcess[str]:
        """Start a new branch with no history, keeping the current work tree."""
        return self._run_git("checkout", "--orphan", branch)

    def checkout(self, branch: str) -> subprocess.CompletedProcess[str]:
        """Switch to a branch."""
        return self._run_git("checkout", branch)

    def pull(self, branch: str, remote: str = "origin") -> subprocess.CompletedProcess[str]:
        """Force-pull a branch from the remote."""
        return self._run_git("pull", remote, branch, "--force")

    def add_all(self) -> subprocess.CompletedProcess[str]:
        """Stage every change in the work tree, including removals."""
        return self._run_git("add", ".")

    def commit(self, message: str) -> subprocess.CompletedProcess[str]:
        """Commit staged changes."""
        return self._run_git("commit", "-m", message)

    def push(self, branch: str, remote: str = "origin") -> subprocess.CompletedProcess[str]:
        """Force-push a branch to the remote."""
        return self._run_git("push", remote, branch, "--force")
