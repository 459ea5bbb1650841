import logging
import threading
from collections.abc import Iterator
from typing import Any

import requests

from .bulk import BulkJob, BulkOperationResult, BulkOperationRunner
from .config import ClientConfig
from .exceptions import UserErrorsException
from .pagination import Page, list_after, paginate
from .query_loader import QueryLoader
from .reconstruct import Shape
from .resources import (
    CollectionService,
    LocationService,
    MetafieldService,
    OrderService,
    VariantService,
    WebhookService,
)
from .retry import with_retry
from .transport import GraphQLTransport, Operation


class ShopifyGraphQLClient:
    """
    Shopify GraphQL API client: single requests, cursor pagination and bulk operations
    """

    def __init__(self, config: ClientConfig, session: requests.Session | None = None):
        """
        Initialize Shopify GraphQL client

        Args:
            config: Store, API version and credentials; fixed for the client's lifetime
            session: Optional pre-configured requests session for GraphQL calls
        """
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.query_loader = QueryLoader()
        self.transport = GraphQLTransport(config, session=session)
        self.bulk = BulkOperationRunner(
            self.transport.execute,
            query_loader=self.query_loader,
            poll_interval=config.poll_interval,
            max_retries=config.max_retries,
            download_timeout=config.timeout,
        )

        self.collections = CollectionService(self)
        self.orders = OrderService(self)
        self.metafields = MetafieldService(self)
        self.locations = LocationService(self)
        self.variants = VariantService(self)
        self.webhooks = WebhookService(self)

        self.logger.info(f"Initialized Shopify GraphQL client for {config.shop_domain} ({config.auth_scheme.value})")

    def execute_query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Execute a GraphQL query or mutation, retrying transient failures

        Args:
            query: GraphQL query string
            variables: Query variables

        Returns:
            Query response data
        """
        operation = Operation(query, variables or {})
        return with_retry(self.config.max_retries, lambda: self.transport.execute(operation))

    def mutate(self, mutation: str, variables: dict[str, Any], payload_key: str) -> dict[str, Any]:
        """
        Execute a mutation and surface its ``userErrors``

        Returns:
            The mutation payload under ``payload_key``

        Raises:
            UserErrorsException: the payload carried user errors
        """
        data = self.execute_query(mutation, variables)
        payload = data.get(payload_key) or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            raise UserErrorsException(payload_key, user_errors)
        return payload

    def list_after(
        self,
        query: str,
        data_key: str,
        cursor: str | None = None,
        page_size: int = 50,
        backward: bool = False,
        variables: dict[str, Any] | None = None,
    ) -> Page:
        """Fetch one page of a connection, see ``pagination.list_after``"""
        return list_after(self._execute_operation, query, data_key, cursor, page_size, backward, variables)

    def paginate(
        self,
        query: str,
        data_key: str,
        batch_size: int = 50,
        variables: dict[str, Any] | None = None,
        max_items: int | None = None,
    ) -> Iterator[list[dict[str, Any]]]:
        """
        Generic pagination helper for GraphQL queries

        Yields:
            List of item dictionaries
        """
        yield from paginate(
            self._execute_operation, query, data_key, batch_size, variables=variables, max_items=max_items
        )

    def bulk_query(
        self,
        query: str,
        shape: Shape | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[Any]:
        """
        Run ``query`` as a bulk operation and return its nested top-level objects

        Args:
            query: Bulk query (no pagination arguments)
            shape: Where child records go; derived from record types when omitted
            timeout: Seconds to wait for the operation before giving up
            cancel_event: Set from another thread to stop waiting
        """
        return self.bulk.run(query, shape=shape, timeout=timeout, cancel_event=cancel_event)

    def export_bulk_query(
        self,
        query: str,
        temp_file_path: str,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BulkOperationResult:
        """Run ``query`` as a bulk operation and save the raw JSONL to ``temp_file_path``"""
        return self.bulk.export_to_file(query, temp_file_path, timeout=timeout, cancel_event=cancel_event)

    def current_bulk_operation(self) -> BulkJob | None:
        return self.bulk.current()

    def cancel_bulk_operation(self, job: BulkJob) -> BulkJob:
        return self.bulk.cancel(job)

    def _execute_operation(self, operation: Operation) -> dict[str, Any]:
        return self.execute_query(operation.query, operation.variables)
