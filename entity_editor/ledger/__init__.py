from .edit_ledger import EditLedger

__all__ = ["EditLedger"]
