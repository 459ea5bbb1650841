from typing import Any

from keboola.component.exceptions import UserException


class ShopifyClientError(UserException):
    """Base exception for all Shopify GraphQL client errors"""


class TransportError(ShopifyClientError):
    """Network failure or non-2xx HTTP status"""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)


class GraphQLResponseError(ShopifyClientError):
    """Well-formed response with a non-empty ``errors`` array"""

    def __init__(self, errors: list[dict[str, Any]], data: dict[str, Any] | None = None):
        self.errors = errors
        self.data = data
        super().__init__(errors[0].get("message", "Unknown error") if errors else "Unknown GraphQL error")

    @property
    def messages(self) -> list[str]:
        return [error.get("message", "Unknown error") for error in self.errors]

    @property
    def locations(self) -> list[dict[str, int]]:
        return [loc for error in self.errors for loc in error.get("locations") or []]


class UserErrorsException(ShopifyClientError):
    """Domain validation errors returned inside a successful mutation payload"""

    def __init__(self, operation: str, user_errors: list[dict[str, Any]]):
        self.operation = operation
        self.user_errors = user_errors
        messages = []
        for error in user_errors:
            field = error.get("field") or []
            field_str = ".".join(str(f) for f in field) if field else "general"
            messages.append(f"{field_str}: {error.get('message', 'Unknown error')}")
        super().__init__(f"{operation} failed: {', '.join(messages)}")


class RetryExhaustedError(ShopifyClientError):
    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"after {attempts} tries: {last_error}")


class BulkOperationSubmitError(ShopifyClientError):
    """Bulk operation could not be created"""


class BulkOperationFailed(ShopifyClientError):
    """Bulk operation reached FAILED, CANCELED or EXPIRED"""

    def __init__(self, job_id: str, status: str, error_code: str | None):
        self.job_id = job_id
        self.status = status
        self.error_code = error_code
        super().__init__(f"Bulk operation {job_id} {status.lower()}: {error_code or 'Unknown error'}")


class BulkOperationTimeout(ShopifyClientError):
    """Deadline elapsed while the bulk operation was still running"""


class OperationCancelled(ShopifyClientError):
    """Caller cancelled the operation"""


class EmptyResultLocationError(ShopifyClientError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Operation result URL is empty for bulk operation {job_id}")


class ReconstructionError(ShopifyClientError):
    """Bulk result records could not be assembled into a result tree"""
