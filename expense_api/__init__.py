"""HTTP JSON surface for the expense ledger."""

from expense_api.app import create_app

__all__ = ["create_app"]
