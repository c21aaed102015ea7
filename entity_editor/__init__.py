"""Schema-driven entity editor core: validation, edit ledger, OCC commits and bulk import."""

__version__ = "0.1.0"
