"""Backup and restore orchestration.

A backup pushes every tracked folder to its own orphan branch of the remote
repository and keeps a manifest of tracked entries on ``master``. A restore
pulls each branch back and copies its staged content over the entry's folder.

Both run on a background thread. Progress is reported only through a
``LogRelay``; the consumer polls it until the ``FINISHED`` sentinel arrives,
at which point the engine is idle again.

Every external command is best-effort: its outcome becomes one log line and
the protocol moves on to the next step or entry regardless.

Example:
    ```python
    engine = BackupEngine(config)
    engine.start_backup(repo_url, registry.entries)
    for line in engine.follow():
        print(line.text)
    ```
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from .branch import MANIFEST_BRANCH
from .config import Config
from .errors import AlreadyRunningError, InvalidInputError
from .paths import BackupEntry
from .relay import FINISHED, LogLine, LogRelay, RelayItem
from .repository import GitRepository

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Path], GitRepository]


class OperationState(Enum):
    """What the engine is currently doing."""

    IDLE = "idle"
    UPLOADING = "uploading"
    DOWNLOADING = "downloading"


def update_manifest(manifest: Path, entries: Sequence[BackupEntry]) -> int:
    """Append a ``name = relativePath`` line for each entry not already listed.

    Existing lines are left untouched and in order.

    Returns:
        int: Number of lines appended.
    """
    content = manifest.read_text(encoding="utf-8") if manifest.exists() else ""
    existing = set(content.splitlines())

    new_lines = []
    for entry in entries:
        line = entry.to_line()
        if line in existing:
            continue
        existing.add(line)
        new_lines.append(line)

    if new_lines:
        with open(manifest, "a", encoding="utf-8") as f:
            if content and not content.endswith("\n"):
                f.write("\n")
            for line in new_lines:
                f.write(line + "\n")
    return len(new_lines)


def copy_directory_contents(source: Path, destination: Path) -> int:
    """Copy the immediate children of ``source`` into ``destination``.

    Same-named files at the destination are overwritten; other files there are
    kept.

    Returns:
        int: Number of top-level items copied.
    """
    destination.mkdir(parents=True, exist_ok=True)
    copied = 0
    for item in sorted(source.iterdir()):
        target = destination / item.name
        if item.is_dir():
            shutil.copytree(item, target, dirs_exist_ok=True)
        else:
            shutil.copy2(item, target)
        copied += 1
    return copied


def stage_directory(source: Path, staging: Path) -> int:
    """Replace ``staging`` with a fresh copy of the children of ``source``."""
    if staging.exists():
        shutil.rmtree(staging)
    return copy_directory_contents(source, staging)


def _commit_message() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


class BackupEngine:
    """Runs one backup or restore at a time on a worker thread.

    Attributes:
        config (Config): Settings for the temp directory, manifest and staging names.
        lines (List[LogLine]): Lines polled so far for the current operation.
    """

    def __init__(self, config: Config, client_factory: Optional[ClientFactory] = None):
        """Initialize the engine.

        Args:
            config (Config): Application configuration.
            client_factory (Optional[ClientFactory]): Builds the version-control
                client for a working directory. Defaults to ``GitRepository``
                with the configured executable.
        """
        self.config = config
        self.client_factory = client_factory or (
            lambda path: GitRepository(path, executable=config.git_executable)
        )
        self.lines: List[LogLine] = []
        self._state = OperationState.IDLE
        self._relay: Optional[LogRelay] = None
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> OperationState:
        with self._lock:
            return self._state

    def current_state(self) -> OperationState:
        """Return the current operation state."""
        return self.state

    def start_backup(self, repo_url: str, entries: Sequence[BackupEntry]) -> None:
        """Begin pushing ``entries`` to ``repo_url`` in the background."""
        self._start(OperationState.UPLOADING, self._backup, repo_url, entries)

    def start_restore(self, repo_url: str, entries: Sequence[BackupEntry]) -> None:
        """Begin pulling ``entries`` from ``repo_url`` in the background."""
        self._start(OperationState.DOWNLOADING, self._restore, repo_url, entries)

    def _start(
        self,
        state: OperationState,
        protocol: Callable[[LogRelay, str, List[BackupEntry]], None],
        repo_url: str,
        entries: Sequence[BackupEntry],
    ) -> None:
        if not repo_url or not repo_url.strip():
            raise InvalidInputError("Repository URL can not be empty")

        with self._lock:
            if self._state is not OperationState.IDLE:
                raise AlreadyRunningError(self._state.value)
            self._state = state
            self.lines = []
            relay = LogRelay(self.config.heading_marker)
            self._relay = relay
            worker = threading.Thread(
                target=self._run,
                args=(protocol, relay, repo_url.strip(), list(entries)),
                name=f"savesaver-{state.value}",
                daemon=True,
            )
            self._worker = worker
        logger.info("Starting %s of %d entries", state.value, len(entries))
        worker.start()

    def poll_log(self, timeout: Optional[float] = 0.0) -> Optional[RelayItem]:
        """Return the next log line, ``FINISHED``, or None if nothing is ready.

        Reading ``FINISHED`` returns the engine to ``IDLE``.
        """
        relay = self._relay
        if relay is None:
            return None

        item = relay.poll(timeout)
        if item is FINISHED:
            worker = self._worker
            if worker is not None:
                worker.join()
            with self._lock:
                self._state = OperationState.IDLE
                self._relay = None
                self._worker = None
            logger.info("Operation finished")
        elif isinstance(item, LogLine):
            self.lines.append(item)
        return item

    def follow(self, timeout: Optional[float] = None) -> Iterator[LogLine]:
        """Yield log lines until the current operation finishes."""
        while self._relay is not None:
            item = self.poll_log(timeout)
            if isinstance(item, LogLine):
                yield item

    def _run(
        self,
        protocol: Callable[[LogRelay, str, List[BackupEntry]], None],
        relay: LogRelay,
        repo_url: str,
        entries: List[BackupEntry],
    ) -> None:
        try:
            protocol(relay, repo_url, entries)
        except Exception as e:
            logger.exception("Operation failed")
            relay.send(f"Error: {e}")
        finally:
            self._remove_temp_dir()
            relay.finish()

    def _remove_temp_dir(self) -> None:
        temp_dir = self.config.temp_dir
        try:
            if temp_dir.exists():
                shutil.rmtree(temp_dir)
        except OSError as e:
            logger.debug("Could not remove %s: %s", temp_dir, e)

    def _prepare_temp_dir(self, relay: LogRelay) -> Optional[Path]:
        self._heading(relay, "Creating temp folder ...")
        temp_dir = self.config.temp_dir
        try:
            self._remove_temp_dir()
            temp_dir.mkdir(parents=True)
        except OSError as e:
            relay.send(f"Error: {e}")
            return None
        return temp_dir

    def _heading(self, relay: LogRelay, text: str) -> None:
        relay.send(f"{self.config.heading_marker}{text}")

    def _step(
        self,
        relay: LogRelay,
        command: Callable[..., subprocess.CompletedProcess[str]],
        *args: str,
    ) -> bool:
        """Run one external command and report its outcome as a single line."""
        try:
            result = command(*args)
        except OSError as e:
            relay.send(f"Error: {e}")
            return False

        if result.returncode == 0:
            output = (result.stdout or "").strip()
            relay.send(output or f"{' '.join(map(str, result.args))}: done")
            return True

        error = (result.stderr or "").strip() or (result.stdout or "").strip()
        relay.send(f"Error: {error or ' '.join(map(str, result.args)) + ' failed'}")
        return False

    def _backup(self, relay: LogRelay, repo_url: str, entries: List[BackupEntry]) -> None:
        work_dir = self._prepare_temp_dir(relay)
        if work_dir is None:
            self._heading(relay, "Finished with errors.")
            return
        git = self.client_factory(work_dir)

        self._heading(relay, "Initializing repo ...")
        self._step(relay, git.init)
        self._heading(relay, "Adding origin ...")
        self._step(relay, git.remote_add, repo_url)
        self._step(relay, git.fetch)
        self._step(relay, git.checkout_orphan, MANIFEST_BRANCH)
        self._step(relay, git.pull, MANIFEST_BRANCH)

        self._heading(relay, "Updating manifest ...")
        manifest = work_dir / self.config.manifest_name
        try:
            added = update_manifest(manifest, entries)
            relay.send(f"Added {added} new entries to {self.config.manifest_name}")
        except OSError as e:
            relay.send(f"Error: {e}")
        self._step(relay, git.add_all)
        self._step(relay, git.commit, _commit_message())
        self._step(relay, git.push, MANIFEST_BRANCH)

        staging = work_dir / self.config.staging_dir
        for entry in entries:
            if not entry.absolute_path.exists():
                self._heading(relay, f'Skipping unexisting path: "{entry.absolute_path}" ...')
                continue

            self._heading(relay, f'Switching to branch: "{entry.branch_name}" ...')
            self._step(relay, git.checkout_orphan, entry.branch_name)

            self._heading(
                relay,
                f'Copying files from "{entry.absolute_path}" to "{self.config.staging_dir}" ...',
            )
            try:
                copied = stage_directory(entry.absolute_path, staging)
                manifest.write_text(str(entry.absolute_path), encoding="utf-8")
            except OSError as e:
                relay.send(f"Error: {e}")
                self._heading(relay, f'Skipping "{entry.name}" ...')
                continue
            relay.send(f"Copied {copied} items")

            self._heading(relay, "Pushing to branch ...")
            self._step(relay, git.add_all)
            self._step(relay, git.commit, _commit_message())
            self._step(relay, git.push, entry.branch_name)

        self._heading(relay, "Finished.")

    def _restore(self, relay: LogRelay, repo_url: str, entries: List[BackupEntry]) -> None:
        work_dir = self._prepare_temp_dir(relay)
        if work_dir is None:
            self._heading(relay, "Finished with errors.")
            return
        git = self.client_factory(work_dir)

        self._heading(relay, "Initializing repo ...")
        self._step(relay, git.init)
        self._heading(relay, "Adding origin ...")
        self._step(relay, git.remote_add, repo_url)
        self._step(relay, git.fetch)

        staging = work_dir / self.config.staging_dir
        for entry in entries:
            self._heading(relay, f'Downloading branch "{entry.branch_name}" ...')
            checked_out = self._step(relay, git.checkout, entry.branch_name)
            pulled = self._step(relay, git.pull, entry.branch_name)

            self._heading(relay, f'Copying to "{entry.absolute_path}" ...')
            # The work tree still holds the previous branch when both failed
            if not (checked_out or pulled):
                relay.send(f'Error: could not download "{entry.branch_name}", skipping copy')
                continue
            if not staging.is_dir():
                relay.send(f'Error: no "{self.config.staging_dir}" folder in "{entry.branch_name}"')
                continue
            try:
                copied = copy_directory_contents(staging, entry.absolute_path)
            except OSError as e:
                relay.send(f"Error: {e}")
                continue
            relay.send(f"Copied {copied} items")

        self._heading(relay, "Finished.")
