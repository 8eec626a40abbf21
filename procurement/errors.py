"""
Error taxonomy for the procurement module.

  ConfigurationError  required settings missing (company GSTIN/state, categories)
  InvalidStateError   operation attempted against an entity in the wrong state
  ValidationError     field-level problems, collected and reported together
  PersistenceError    failure from the document store
  NotFoundError       referenced entity does not exist

None of these are retried inside the module.
"""
from typing import Iterable


class ProcurementError(Exception):
    """Base class for all procurement errors."""


class ConfigurationError(ProcurementError):
    pass


class InvalidStateError(ProcurementError):
    pass


class PersistenceError(ProcurementError):
    pass


class NotFoundError(ProcurementError):
    pass


class ValidationError(ProcurementError):
    """Aggregate of field-level messages, e.g. every bad line of a CSV import."""

    def __init__(self, messages: Iterable[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "Validation failed")
