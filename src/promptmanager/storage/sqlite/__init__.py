"""
Statement-level helpers for the prompt database, one module per table.

Callers go through :class:`promptmanager.storage.database.DatabaseSession`;
these helpers take a raw connection and assume it is already initialized.
"""

__all__: list[str] = []
