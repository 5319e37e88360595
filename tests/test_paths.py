"""Tests for the path registry."""

from pathlib import Path

import pytest

from savesaver.core.errors import InvalidInputError
from savesaver.core.paths import (
    BackupEntry,
    PathRegistry,
    parse_flat_line,
    to_absolute_path,
    to_relative_path,
)


@pytest.fixture
def registry(tmp_path: Path, fake_home: Path) -> PathRegistry:
    """Create an empty registry."""
    registry = PathRegistry(tmp_path / "data" / "paths.txt")
    registry.load()
    return registry


def test_load_creates_missing_file(tmp_path: Path) -> None:
    """Test loading a registry whose file does not exist yet."""
    registry = PathRegistry(tmp_path / "nested" / "paths.txt")
    assert registry.load() == []
    assert registry.path.exists()
    assert registry.path.read_text() == ""


def test_load_skips_blank_lines(tmp_path: Path, fake_home: Path) -> None:
    """Test parsing a registry file with blank and CRLF lines."""
    path = tmp_path / "paths.txt"
    path.write_text("\r\nGame A = $HOME/saves/a\r\n\r\nOther = /srv/other\n\n")

    entries = PathRegistry(path).load()

    assert [e.name for e in entries] == ["Game A", "Other"]
    assert entries[0].absolute_path == fake_home / "saves" / "a"
    assert entries[1].absolute_path == Path("/srv/other")


@pytest.mark.parametrize(
    "name, branch",
    [
        ("Game A", "game-a"),
        ("Hollow Knight", "hollow-knight"),
        ("Stardew Valley 2", "stardew-valley-2"),
        ("celeste", "celeste"),
    ],
)
def test_add_then_load_derives_branch(
    registry: PathRegistry, fake_home: Path, name: str, branch: str
) -> None:
    """Test that the branch name survives a round trip through the file."""
    registry.add(name, fake_home / "saves" / name)

    entries = PathRegistry(registry.path).load()
    assert len(entries) == 1
    assert entries[0].name == name
    assert entries[0].branch_name == branch


def test_add_persists_portable_path(registry: PathRegistry, fake_home: Path) -> None:
    """Test that paths under home are written with the placeholder."""
    entry = registry.add("Game A", fake_home / "saves" / "a")

    assert entry.relative_path == Path("$HOME/saves/a")
    assert registry.path.read_text() == "Game A = $HOME/saves/a\n"


def test_add_appends_after_unterminated_line(tmp_path: Path, fake_home: Path) -> None:
    """Test appending to a file whose last line has no newline."""
    path = tmp_path / "paths.txt"
    path.write_text("Game A = $HOME/saves/a")
    registry = PathRegistry(path)
    registry.load()

    registry.add("Game B", fake_home / "saves" / "b")

    assert [e.name for e in PathRegistry(path).load()] == ["Game A", "Game B"]


@pytest.mark.parametrize("name", ["", "   "])
def test_add_rejects_empty_name(registry: PathRegistry, name: str) -> None:
    """Test that an empty name is rejected."""
    with pytest.raises(InvalidInputError):
        registry.add(name, "/srv/saves")
    assert len(registry) == 0
    assert registry.path.read_text() == ""


@pytest.mark.parametrize("name", ["a=b", "master", "Master", "bad..name", "what?", "-dash"])
def test_add_rejects_invalid_branch(registry: PathRegistry, name: str) -> None:
    """Test that names deriving an unusable branch are rejected."""
    with pytest.raises(InvalidInputError):
        registry.add(name, "/srv/saves")


def test_add_rejects_colliding_branch(registry: PathRegistry) -> None:
    """Test that two names mapping to one branch are rejected."""
    registry.add("Game A", "/srv/a")
    with pytest.raises(InvalidInputError, match="game-a"):
        registry.add("game a", "/srv/other")
    assert len(PathRegistry(registry.path).load()) == 1


def test_remove_rewrites_remaining(registry: PathRegistry, fake_home: Path) -> None:
    """Test that removal keeps the remaining entries in order."""
    for name in ["One", "Two", "Three", "Four"]:
        registry.add(name, fake_home / name.lower())

    removed = registry.remove(1)

    assert removed is not None
    assert removed.name == "Two"
    reloaded = PathRegistry(registry.path).load()
    assert [e.name for e in reloaded] == ["One", "Three", "Four"]
    assert [e.name for e in registry] == ["One", "Three", "Four"]
    assert reloaded[1].relative_path == Path("$HOME/three")


def test_remove_on_empty_registry_is_noop(registry: PathRegistry) -> None:
    """Test removing from an empty registry."""
    assert registry.remove(0) is None
    assert registry.path.read_text() == ""


def test_remove_out_of_range(registry: PathRegistry) -> None:
    """Test removing an index that does not exist."""
    registry.add("Game A", "/srv/a")
    with pytest.raises(InvalidInputError):
        registry.remove(3)
    assert len(registry) == 1


def test_remove_leaves_no_temp_files(registry: PathRegistry) -> None:
    """Test that the atomic rewrite cleans up after itself."""
    registry.add("Game A", "/srv/a")
    registry.add("Game B", "/srv/b")
    registry.remove(0)
    assert [p.name for p in registry.path.parent.iterdir()] == ["paths.txt"]


def test_portable_round_trip(fake_home: Path) -> None:
    """Test that a home path survives normalization and expansion."""
    original = fake_home / "Documents" / "My Games" / "save"
    relative = to_relative_path(original)

    assert relative.parts[0] == "$HOME"
    assert to_absolute_path(relative) == original


def test_portable_path_outside_home(fake_home: Path) -> None:
    """Test that paths outside home are left alone."""
    path = Path("/opt/games/saves")
    assert to_relative_path(path) == path
    assert to_absolute_path(path) == path


def test_entry_expands_on_new_machine(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a stored placeholder resolves against the current home."""
    other_home = tmp_path / "other"
    monkeypatch.setenv("HOME", str(other_home))

    entry = BackupEntry.create("Game A", "$HOME/saves/a")

    assert entry.absolute_path == other_home / "saves" / "a"
    assert entry.relative_path == Path("$HOME/saves/a")


def test_parse_flat_line() -> None:
    """Test splitting key/value lines."""
    assert parse_flat_line("repo_url = https://example.com/a=b") == (
        "repo_url",
        "https://example.com/a=b",
    )
    assert parse_flat_line("   ") is None


def test_parse_flat_line_rejects_malformed() -> None:
    """Test that lines without a key, a value or a separator are not parsed."""
    assert parse_flat_line("Game A") is None
    assert parse_flat_line("Game A =") is None
    assert parse_flat_line("= /srv/a") is None


def test_load_skips_malformed_lines(
    tmp_path: Path, fake_home: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that a line without a path never becomes an entry."""
    path = tmp_path / "paths.txt"
    path.write_text("Game A\nGame B = \n= /srv/c\nGame D = /srv/d\n")

    entries = PathRegistry(path).load()

    assert [(e.name, e.absolute_path) for e in entries] == [("Game D", Path("/srv/d"))]
    assert sum("Ignoring malformed line" in r.getMessage() for r in caplog.records) == 3
