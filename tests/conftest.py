"""Test configuration."""

from __future__ import annotations

import shutil
import subprocess
import threading
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest

from savesaver.core.config import Config
from savesaver.core.engine import BackupEngine
from savesaver.core.relay import FINISHED, LogLine
from savesaver.core.repository import GitRepository


class FakeGitRepository(GitRepository):
    """Records git invocations instead of running them.

    ``remote`` maps branch names to the files stored in their staging folder;
    checking out or pulling such a branch writes them into the work tree.
    """

    def __init__(
        self,
        path: Path,
        calls: List[Tuple[str, ...]],
        commits: List[Tuple[str, str, List[str]]],
        remote: Optional[Dict[str, Dict[str, str]]] = None,
        fail: Optional[Set[str]] = None,
        gate: Optional[threading.Event] = None,
    ) -> None:
        super().__init__(path)
        self.calls = calls
        self.commits = commits
        self.remote = remote or {}
        self.fail = fail or set()
        self.gate = gate
        self.branch = ""

    def _run_git(self, *args: str) -> subprocess.CompletedProcess[str]:
        if self.gate is not None:
            self.gate.wait(timeout=10)
        self.calls.append(args)
        if args[0] in self.fail:
            return subprocess.CompletedProcess(
                ["git", *args], 1, stdout="", stderr=f"fatal: {args[0]} failed"
            )

        if args[0] == "checkout":
            self.branch = args[-1]
            self._write_remote_content(args[-1])
        elif args[0] == "pull":
            self._write_remote_content(args[2])
        elif args[0] == "commit":
            readme = self.path / "README.md"
            content = self.path / "content"
            files = (
                sorted(str(p.relative_to(content)) for p in content.rglob("*") if p.is_file())
                if content.exists()
                else []
            )
            self.commits.append(
                (self.branch, readme.read_text() if readme.exists() else "", files)
            )
        return subprocess.CompletedProcess(["git", *args], 0, stdout="", stderr="")

    def _write_remote_content(self, branch: str) -> None:
        files = self.remote.get(branch)
        if files is None:
            return
        content = self.path / "content"
        if content.exists():
            shutil.rmtree(content)
        for name, text in files.items():
            target = content / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text)


class FakeGit:
    """Factory producing ``FakeGitRepository`` clients that share recordings."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, ...]] = []
        self.commits: List[Tuple[str, str, List[str]]] = []
        self.remote: Dict[str, Dict[str, str]] = {}
        self.fail: Set[str] = set()
        self.gate: Optional[threading.Event] = None

    def __call__(self, path: Path) -> FakeGitRepository:
        return FakeGitRepository(
            path, self.calls, self.commits, self.remote, self.fail, self.gate
        )


def drain(engine: BackupEngine) -> List[LogLine]:
    """Poll an engine until its operation finishes and return the lines read."""
    lines = []
    while True:
        item = engine.poll_log(timeout=10)
        assert item is not None, "operation did not report progress in time"
        if item is FINISHED:
            return lines
        lines.append(item)


@pytest.fixture
def fake_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the home directory at a temporary folder."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    return home


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Create a configuration rooted in a temporary data directory."""
    return Config(
        overrides={
            "data_dir": str(tmp_path / "data"),
            "log_file": str(tmp_path / "logs" / "uploading.log"),
        }
    )


@pytest.fixture
def fake_git() -> FakeGit:
    """Create a recording git client factory."""
    return FakeGit()


@pytest.fixture
def engine(test_config: Config, fake_git: FakeGit) -> BackupEngine:
    """Create an engine that talks to the fake git client."""
    return BackupEngine(test_config, client_factory=fake_git)
