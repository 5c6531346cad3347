"""Catalog feed reconciliation and document store synchronisation."""

__version__ = "0.1.0"
