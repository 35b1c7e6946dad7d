from .app import create_ledger_app

__all__ = ["create_ledger_app"]
