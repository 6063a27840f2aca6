"""Package version, kept in sync with ``project.version`` in pyproject.toml."""

__version__ = "0.1.0"
