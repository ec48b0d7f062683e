from __future__ import annotations


class LedgerError(Exception):
    """Base class for failures talking to the ledger store."""


class SubmissionFailed(LedgerError):
    """The store rejected a transaction."""

    def __init__(self, op: str, reason: str) -> None:
        super().__init__(f"{op} rejected: {reason}")
        self.op = op
        self.reason = reason


class CreationFailed(LedgerError):
    """A new game could not be allocated."""


class MalformedState(LedgerError, ValueError):
    """An account's data could not be decoded.

    Indicates a protocol/version mismatch; never retried.
    """


class AccountNotFound(LedgerError, LookupError):
    def __init__(self, account_id: str) -> None:
        super().__init__(f"Account not found: {account_id}")
        self.account_id = account_id


class ProgramError(ValueError):
    """Raised by the ledger program when a transaction breaks the game rules."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
