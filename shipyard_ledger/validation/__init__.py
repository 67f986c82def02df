"""Input validation package."""

from shipyard_ledger.validation.validator import StatementInputValidator

__all__ = ["StatementInputValidator"]
