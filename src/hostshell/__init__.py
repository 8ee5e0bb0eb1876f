"""Interactive shells into a running Python host over a Unix socket."""

__version__ = "0.1.0"
