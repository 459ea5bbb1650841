import logging
import time
from collections.abc import Callable
from typing import TypeVar

from .exceptions import (
    BulkOperationFailed,
    BulkOperationSubmitError,
    BulkOperationTimeout,
    OperationCancelled,
    ReconstructionError,
    RetryExhaustedError,
    UserErrorsException,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

INVALID_TOKEN_MARKER = "Invalid API key or access token"
INVALID_STOREFRONT_TOKEN_MARKER = "401 Unauthorized body"
PERMISSION_DENIED_MARKER = "403 Forbidden"
MAX_COST_LIMIT_MARKER = "max cost limit"
EMPTY_RESULT_LOCATION_MARKERS = ("Operation result URL is empty", "no Host in request URL")


def is_invalid_token_error(err: Exception | None) -> bool:
    return err is not None and INVALID_TOKEN_MARKER in str(err)


def is_invalid_storefront_token_error(err: Exception | None) -> bool:
    return err is not None and INVALID_STOREFRONT_TOKEN_MARKER in str(err)


def is_permission_error(err: Exception | None) -> bool:
    return err is not None and PERMISSION_DENIED_MARKER in str(err)


def is_max_cost_limit_error(err: Exception | None) -> bool:
    return err is not None and MAX_COST_LIMIT_MARKER in str(err)


def is_empty_result_location_error(err: Exception | None) -> bool:
    return err is not None and any(marker in str(err) for marker in EMPTY_RESULT_LOCATION_MARKERS)


def is_cancellation_error(err: Exception | None) -> bool:
    return isinstance(err, (OperationCancelled, BulkOperationTimeout))


def is_domain_error(err: Exception | None) -> bool:
    return isinstance(err, (UserErrorsException, BulkOperationSubmitError, BulkOperationFailed, ReconstructionError))


def is_final_error(err: Exception) -> bool:
    """
    Errors that are returned to the caller without another attempt.

    Cost limit and empty result URL errors are final as well, even though either
    might clear up later.
    """
    return (
        is_invalid_token_error(err)
        or is_invalid_storefront_token_error(err)
        or is_permission_error(err)
        or is_max_cost_limit_error(err)
        or is_empty_result_location_error(err)
        or is_cancellation_error(err)
        or is_domain_error(err)
    )


def with_retry(
    max_attempts: int,
    operation: Callable[[], T],
    classifier: Callable[[Exception], bool] = is_final_error,
    sleep: Callable[[float], None] = time.sleep,
    delay: float = 1.0,
) -> T:
    """
    Call ``operation`` until it succeeds, retrying up to ``max_attempts`` times

    Final errors (see ``classifier``) are re-raised as-is on the spot. Any other error
    is retried after sleeping ``retries * delay`` seconds; once the retries are used up
    ``RetryExhaustedError`` is raised with the total number of tries and the last cause.

    Args:
        max_attempts: Number of retries after the first call
        operation: Zero-argument callable to invoke
        classifier: Returns True for errors that must not be retried
        sleep: Sleep function, replaceable for cancellable waits
        delay: Time unit of the linear backoff, in seconds

    Returns:
        Whatever ``operation`` returns
    """
    retries = 0
    while True:
        try:
            return operation()
        except Exception as e:
            if classifier(e):
                raise
            retries += 1
            if retries > max_attempts:
                raise RetryExhaustedError(retries, e) from e
            wait_time = retries * delay
            logger.warning(f"{e}. Waiting {wait_time}s before retry {retries}/{max_attempts}")
            sleep(wait_time)
