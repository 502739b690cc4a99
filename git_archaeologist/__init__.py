"""Browse commit-message clusters produced by a remote repository analysis service."""

__version__ = "0.1.0"
