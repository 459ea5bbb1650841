import unittest

import mock

from shopify_graphql.exceptions import (
    BulkOperationFailed,
    BulkOperationTimeout,
    OperationCancelled,
    ReconstructionError,
    RetryExhaustedError,
    ShopifyClientError,
    TransportError,
)
from shopify_graphql.retry import is_final_error, with_retry

FINAL_MESSAGES = [
    "[API] Invalid API key or access token (unrecognized login or wrong password)",
    "non-200 OK status code: 401 Unauthorized body: b''",
    "non-200 OK status code: 403 Forbidden body: b'denied'",
    "Query has exceeded the max cost limit of 1000",
    "Operation result URL is empty for bulk operation gid://shopify/BulkOperation/1",
    'Get "": no Host in request URL',
]


class TestWithRetry(unittest.TestCase):
    def test_final_errors_return_on_first_attempt(self):
        for message in FINAL_MESSAGES:
            with self.subTest(message=message):
                error = ShopifyClientError(message)
                operation = mock.Mock(side_effect=error)
                sleep = mock.Mock()

                with self.assertRaises(ShopifyClientError) as ctx:
                    with_retry(5, operation, sleep=sleep)

                self.assertIs(ctx.exception, error)
                self.assertEqual(operation.call_count, 1)
                sleep.assert_not_called()

    def test_cancellation_and_deadline_are_final(self):
        for error in (OperationCancelled("stop"), BulkOperationTimeout("late")):
            operation = mock.Mock(side_effect=error)
            sleep = mock.Mock()
            with self.assertRaises(type(error)):
                with_retry(3, operation, sleep=sleep)
            self.assertEqual(operation.call_count, 1)
            sleep.assert_not_called()

    def test_domain_errors_are_not_retried(self):
        errors = [
            BulkOperationFailed("gid://shopify/BulkOperation/1", "FAILED", "TIMEOUT"),
            ReconstructionError("orphan record"),
        ]
        for error in errors:
            operation = mock.Mock(side_effect=error)
            with self.assertRaises(type(error)):
                with_retry(3, operation, sleep=mock.Mock())
            self.assertEqual(operation.call_count, 1)

    def test_transient_error_exhausts_attempts(self):
        cause = TransportError("non-200 OK status code: 502 Bad Gateway body: b''", status=502)
        operation = mock.Mock(side_effect=cause)
        sleep = mock.Mock()

        with self.assertRaises(RetryExhaustedError) as ctx:
            with_retry(3, operation, sleep=sleep)

        self.assertEqual(operation.call_count, 4)
        self.assertEqual(ctx.exception.attempts, 4)
        self.assertIs(ctx.exception.last_error, cause)
        self.assertIs(ctx.exception.__cause__, cause)
        self.assertIn("after 4 tries", str(ctx.exception))
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1, 2, 3])

    def test_success_after_transient_failures(self):
        operation = mock.Mock(side_effect=[ConnectionError("reset"), ConnectionError("reset"), {"ok": True}])
        sleep = mock.Mock()

        result = with_retry(5, operation, sleep=sleep)

        self.assertEqual(result, {"ok": True})
        self.assertEqual(operation.call_count, 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1, 2])

    def test_success_on_first_call_does_not_sleep(self):
        sleep = mock.Mock()
        self.assertEqual(with_retry(3, lambda: 42, sleep=sleep), 42)
        sleep.assert_not_called()

    def test_zero_attempts_tries_once(self):
        operation = mock.Mock(side_effect=ValueError("nope"))
        with self.assertRaises(RetryExhaustedError) as ctx:
            with_retry(0, operation, sleep=mock.Mock())
        self.assertEqual(operation.call_count, 1)
        self.assertEqual(ctx.exception.attempts, 1)

    def test_custom_classifier(self):
        operation = mock.Mock(side_effect=RuntimeError("THROTTLED"))
        sleep = mock.Mock()
        with self.assertRaises(RuntimeError):
            with_retry(3, operation, classifier=lambda e: isinstance(e, RuntimeError), sleep=sleep)
        self.assertEqual(operation.call_count, 1)

    def test_delay_scales_backoff(self):
        operation = mock.Mock(side_effect=[TimeoutError(), TimeoutError(), "done"])
        sleep = mock.Mock()
        with_retry(3, operation, sleep=sleep, delay=0.5)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [0.5, 1.0])


class TestClassifier(unittest.TestCase):
    def test_generic_errors_are_retryable(self):
        self.assertFalse(is_final_error(TransportError("non-200 OK status code: 500 Internal Server Error")))
        self.assertFalse(is_final_error(ValueError("Throttled")))

    def test_marker_matching_is_substring_based(self):
        for message in FINAL_MESSAGES:
            self.assertTrue(is_final_error(RuntimeError(f"wrapped: {message}")))


if __name__ == "__main__":
    unittest.main()
