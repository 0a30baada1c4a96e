"""Vehicle availability reconciliation and calendar feed synchronisation."""

__version__ = "1.0.0"
