"""ovsx: command line client for publishing to Open VSX registries."""

__version__ = "0.1.0"
