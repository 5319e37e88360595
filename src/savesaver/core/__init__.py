"""Core functionality for savesaver."""

from .config import Config, RepositoryConfig
from .engine import BackupEngine, OperationState
from .errors import AlreadyRunningError, InvalidInputError
from .paths import BackupEntry, PathRegistry
from .relay import FINISHED, LogLine, LogRelay
from .repository import GitRepository

__all__ = [
    "FINISHED",
    "AlreadyRunningError",
    "BackupEngine",
    "BackupEntry",
    "Config",
    "GitRepository",
    "InvalidInputError",
    "LogLine",
    "LogRelay",
    "OperationState",
    "PathRegistry",
    "RepositoryConfig",
]
