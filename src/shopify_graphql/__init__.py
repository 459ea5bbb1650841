from .bulk import BulkJob, BulkOperationResult, BulkOperationRunner, BulkOperationStatus
from .client import ShopifyGraphQLClient
from .config import AuthScheme, ClientConfig
from .exceptions import (
    BulkOperationFailed,
    BulkOperationSubmitError,
    BulkOperationTimeout,
    EmptyResultLocationError,
    GraphQLResponseError,
    OperationCancelled,
    ReconstructionError,
    RetryExhaustedError,
    ShopifyClientError,
    TransportError,
    UserErrorsException,
)
from .pagination import Page, list_after, paginate
from .reconstruct import Shape, reconstruct, reconstruct_file
from .retry import is_final_error, with_retry
from .transport import GraphQLTransport, Operation

__all__ = [
    "AuthScheme",
    "BulkJob",
    "BulkOperationFailed",
    "BulkOperationResult",
    "BulkOperationRunner",
    "BulkOperationStatus",
    "BulkOperationSubmitError",
    "BulkOperationTimeout",
    "ClientConfig",
    "EmptyResultLocationError",
    "GraphQLResponseError",
    "GraphQLTransport",
    "Operation",
    "OperationCancelled",
    "Page",
    "ReconstructionError",
    "RetryExhaustedError",
    "Shape",
    "ShopifyClientError",
    "ShopifyGraphQLClient",
    "TransportError",
    "UserErrorsException",
    "is_final_error",
    "list_after",
    "paginate",
    "reconstruct",
    "reconstruct_file",
    "with_retry",
]
