"""promptreg - install and track prompt bundles in a repository."""

__version__ = "0.1.0"
