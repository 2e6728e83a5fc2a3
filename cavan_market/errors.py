from __future__ import annotations


class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def name(self) -> str:
        return type(self).__name__


class NotFound(MarketplaceError):
    status_code = 404

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} with ID '{entity_id}' not found.")
        self.kind = kind
        self.entity_id = entity_id


class ValidationError(MarketplaceError):
    status_code = 400


class InvalidRange(ValidationError):
    pass


class InPast(ValidationError):
    pass


class MissingOrigin(ValidationError):
    pass


class Forbidden(MarketplaceError):
    status_code = 403


class UpstreamDegraded(MarketplaceError):
    status_code = 502


class StorageError(MarketplaceError):
    pass
