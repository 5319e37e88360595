"""Branch naming for tracked entries."""

from __future__ import annotations

import re

from .errors import InvalidInputError

# Branch holding the manifest of tracked entries
MANIFEST_BRANCH = "master"

# Characters git refuses in a ref name component
_FORBIDDEN_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")


def branch_name_for(name: str) -> str:
    """Derive the branch an entry's content lives in from its display name.

    Example:
        ```python
        branch_name_for("Game A")  # "game-a"
        ```
    """
    return name.replace(" ", "-").lower()


def validate_branch_name(branch: str) -> None:
    """Check a derived branch name against git's ref-name rules.

    Args:
        branch: Branch name to check.

    Raises:
        InvalidInputError: If git would reject the name, or if it is the
            manifest branch.
    """
    if not branch:
        raise InvalidInputError("Branch name can not be empty")
    if branch == MANIFEST_BRANCH:
        raise InvalidInputError(f"'{branch}' is reserved for the manifest")
    if _FORBIDDEN_CHARS.search(branch):
        raise InvalidInputError(f"'{branch}' contains characters git does not allow")
    if branch.startswith("-") or branch.startswith("/") or branch.endswith("/"):
        raise InvalidInputError(f"'{branch}' can not start with '-' or start/end with '/'")
    if branch.endswith(".") or branch.endswith(".lock"):
        raise InvalidInputError(f"'{branch}' can not end with '.' or '.lock'")
    if ".." in branch or "@{" in branch or "//" in branch or branch == "@":
        raise InvalidInputError(f"'{branch}' is not a valid branch name")
    if any(part.startswith(".") for part in branch.split("/")):
        raise InvalidInputError(f"'{branch}' has a component starting with '.'")
