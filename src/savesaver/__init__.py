"""Back up game save folders into branches of a git repository."""

__version__ = "0.1.0"
