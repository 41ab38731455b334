from __future__ import annotations


class ProdotaskError(Exception):
    """Base class for errors raised by the service layer."""


class NotFound(ProdotaskError):
    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class CreationFailed(ProdotaskError):
    """Insert went through but the row could not be read back."""

    def __init__(self, entity: str):
        super().__init__(f"Failed to create {entity}")
        self.entity = entity


class ValidationFailed(ProdotaskError, ValueError):
    pass


class TransactionAborted(ProdotaskError):
    pass
