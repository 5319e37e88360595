"""Registry of tracked save folders.

Entries live in a flat ``name = path`` file, one per line. Paths under the
user's home directory are stored relative to the ``$HOME`` placeholder so the
same file (and the manifest pushed to the remote) works on every machine.

Example:
    ```python
    registry = PathRegistry(Path("~/.savesaver/paths.txt").expanduser())
    registry.load()
    registry.add("Game A", Path.home() / "saves" / "a")
    for entry in registry:
        print(entry.branch_name, entry.absolute_path)
    ```
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from .branch import branch_name_for, validate_branch_name
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

HOME_PLACEHOLDER = "$HOME"


def to_relative_path(path: Union[str, Path]) -> Path:
    """Replace the home directory prefix of a path with the placeholder."""
    path = Path(path)
    home = Path.home()
    try:
        return Path(HOME_PLACEHOLDER) / path.relative_to(home)
    except ValueError:
        return path


def to_absolute_path(path: Union[str, Path]) -> Path:
    """Expand the placeholder using the current machine's home directory."""
    path = Path(path)
    if path.parts and path.parts[0] == HOME_PLACEHOLDER:
        return Path.home().joinpath(*path.parts[1:])
    return path.expanduser()


def parse_flat_line(line: str) -> Optional[Tuple[str, str]]:
    """Split a ``key = value`` line.

    Returns None for a blank line, a line without ``=``, or one whose key or
    value is empty.
    """
    key, sep, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if not sep or not key or not value:
        return None
    return key, value


def write_atomic(path: Path, content: str) -> None:
    """Replace a file's content by writing a sibling temp file and renaming it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


@dataclass(frozen=True)
class BackupEntry:
    """One tracked directory and the branch its content is pushed to."""

    name: str
    branch_name: str
    absolute_path: Path
    relative_path: Path

    @classmethod
    def create(cls, name: str, path: Union[str, Path]) -> BackupEntry:
        """Build an entry, normalizing the path both ways around the home directory."""
        absolute = to_absolute_path(path)
        return cls(
            name=name,
            branch_name=branch_name_for(name),
            absolute_path=absolute,
            relative_path=to_relative_path(absolute),
        )

    def to_line(self) -> str:
        """Return the ``name = relativePath`` line used in the registry and manifest."""
        return f"{self.name} = {self.relative_path}"


class PathRegistry:
    """In-memory list of tracked entries backed by a flat file.

    Attributes:
        path (Path): Backing file.
        entries (List[BackupEntry]): Entries in file order.
    """

    def __init__(self, path: Path) -> None:
        """Initialize registry."""
        self.path = Path(path)
        self.entries: List[BackupEntry] = []

    def __iter__(self) -> Iterator[BackupEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def load(self) -> List[BackupEntry]:
        """Read entries from the backing file, creating an empty one if absent."""
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch()
            logger.debug("Created empty path registry at %s", self.path)
            self.entries = []
            return []

        entries = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            parsed = parse_flat_line(line)
            if parsed is None:
                if line.strip():
                    logger.warning("Ignoring malformed line in %s: %r", self.path, line)
                continue
            name, path = parsed
            entries.append(BackupEntry.create(name, path))
        self.entries = entries
        logger.debug("Loaded %d entries from %s", len(entries), self.path)
        return list(entries)

    def add(self, name: str, path: Union[str, Path]) -> BackupEntry:
        """Track a new directory and append it to the backing file.

        Args:
            name: Display name, also the source of the branch name.
            path: Directory to back up.

        Returns:
            BackupEntry: The new entry.

        Raises:
            InvalidInputError: If the name is empty, contains ``=``, derives an
                invalid branch name, or collides with an existing entry's branch.
        """
        name = name.strip()
        if not name:
            raise InvalidInputError("Name can not be empty")
        if "=" in name:
            raise InvalidInputError("Name can not contain '='")

        entry = BackupEntry.create(name, path)
        validate_branch_name(entry.branch_name)
        for existing in self.entries:
            if existing.branch_name == entry.branch_name:
                raise InvalidInputError(
                    f"'{name}' uses the same branch as '{existing.name}' ({entry.branch_name})"
                )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = self.path.read_text(encoding="utf-8") if self.path.exists() else ""
        needs_newline = bool(content) and not content.endswith("\n")
        with open(self.path, "a", encoding="utf-8") as f:
            if needs_newline:
                f.write("\n")
            f.write(entry.to_line() + "\n")

        self.entries.append(entry)
        logger.info("Added %s -> %s", entry.name, entry.absolute_path)
        return entry

    def remove(self, index: int) -> Optional[BackupEntry]:
        """Remove the entry at ``index`` and rewrite the backing file.

        Returns:
            Optional[BackupEntry]: The removed entry, or None if the registry is empty.

        Raises:
            InvalidInputError: If ``index`` is out of range.
        """
        if not self.entries:
            return None
        if not 0 <= index < len(self.entries):
            raise InvalidInputError(f"No entry at index {index}")

        removed = self.entries.pop(index)
        write_atomic(self.path, "".join(entry.to_line() + "\n" for entry in self.entries))
        logger.info("Removed %s", removed.name)
        return removed
