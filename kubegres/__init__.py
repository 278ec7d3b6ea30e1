"""Reconciliation core for a PostgreSQL cluster operator: status records, blocking operations, backup states and a reconcile pass."""

__version__ = "0.1.0"