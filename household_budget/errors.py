"""Error types and load-status values shared across the engine.

Row-level defects never raise: they resolve to a documented fallback in
the module that parses them.  Whole-load failures are reported as a
:class:`LoadStatus`; write failures raise one of the exceptions below.
"""

from __future__ import annotations

from dataclasses import dataclass


class BudgetError(Exception):
    """Base class for household budget errors."""


class StoreError(BudgetError):
    """Transport or protocol failure talking to the tabular store."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AddressResolutionError(BudgetError):
    """A forecast cell address (month column or label row) could not be resolved."""


@dataclass(frozen=True)
class LoadStatus:
    """Outcome of one ingestion attempt.

    ``loaded`` distinguishes "still loading" from "finished"; a non-empty
    ``error`` means the accompanying numbers must not be trusted.
    """

    loaded: bool = False
    error: str = ''

    @property
    def trustworthy(self) -> bool:
        return self.loaded and not self.error

    @classmethod
    def pending(cls) -> 'LoadStatus':
        return cls(loaded=False, error='')

    @classmethod
    def ok(cls) -> 'LoadStatus':
        return cls(loaded=True, error='')

    @classmethod
    def failed(cls, error: object) -> 'LoadStatus':
        message = str(error) or error.__class__.__name__
        return cls(loaded=True, error=message)
