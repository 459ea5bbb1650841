import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import requests
import sentry_sdk

from .config import ACCESS_TOKEN_HEADER, STOREFRONT_TOKEN_HEADER, AuthScheme, ClientConfig
from .exceptions import GraphQLResponseError, TransportError

SPAN_OP = "shopify_graphql.send"

_OPERATION_HEADER = re.compile(r"^\s*(query|mutation|subscription)?\s*([_A-Za-z][_0-9A-Za-z]*)?")
_FIRST_FIELD = re.compile(r"{\s*([_A-Za-z][_0-9A-Za-z]*)")


@dataclass(frozen=True)
class Operation:
    """A GraphQL query or mutation with its variables"""

    query: str
    variables: dict[str, Any] = field(default_factory=dict)

    @property
    def description(self) -> str:
        return describe_operation(self.query)


def describe_operation(query: str) -> str:
    """
    Short span description for a GraphQL document, e.g. ``query GetOrders`` or
    ``mutation bulkOperationRunQuery`` for anonymous documents.
    """
    header = _OPERATION_HEADER.match(query)
    kind = (header.group(1) if header else None) or "query"
    name = header.group(2) if header else None
    if not name:
        first_field = _FIRST_FIELD.search(query)
        name = first_field.group(1) if first_field else "anonymous"
    return f"{kind} {name}"


class GraphQLTransport:
    """
    Sends single GraphQL operations to one Shopify endpoint.

    Authentication is resolved once from the client configuration and attached to the
    underlying ``requests.Session``; it never changes for the lifetime of the transport.
    """

    def __init__(self, config: ClientConfig, session: requests.Session | None = None):
        self.config = config
        self.url = config.graphql_url
        self.logger = logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        self._apply_auth()

    def _apply_auth(self):
        scheme = self.config.auth_scheme
        if scheme == AuthScheme.ACCESS_TOKEN:
            self.session.headers[ACCESS_TOKEN_HEADER] = self.config.access_token
        elif scheme == AuthScheme.BASIC:
            self.session.auth = (self.config.api_key, self.config.password)
        else:
            self.session.headers[STOREFRONT_TOKEN_HEADER] = self.config.storefront_token

    def execute(self, operation: Operation) -> dict[str, Any]:
        """
        Execute one operation and return its decoded ``data``

        Raises:
            TransportError: network failure or non-2xx status
            GraphQLResponseError: the response carried a non-empty ``errors`` array
        """
        with sentry_sdk.start_span(op=SPAN_OP, name=operation.description) as span:
            span.set_data("GraphQL Query", operation.query)
            span.set_data("GraphQL Variables", operation.variables)
            span.set_data("URL", self.url)
            try:
                data = self._send(operation)
            except Exception:
                span.set_status("internal_error")
                raise
            span.set_status("ok")
            return data

    def _send(self, operation: Operation) -> dict[str, Any]:
        payload: dict[str, Any] = {"query": operation.query}
        if operation.variables:
            payload["variables"] = operation.variables

        self.logger.debug(f"Sending {operation.description} to {self.url}")
        try:
            response = self.session.post(self.url, data=json.dumps(payload), timeout=self.config.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {self.url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            body = response.text
            raise TransportError(
                f"non-200 OK status code: {response.status_code} {response.reason} body: {body!r}",
                status=response.status_code,
                body=body,
            )

        try:
            envelope = response.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON in response from {self.url}: {e}", status=response.status_code, body=response.text
            ) from e

        data = envelope.get("data") or {}
        errors = envelope.get("errors") or []
        if isinstance(errors, str):
            errors = [{"message": errors}]
        if errors:
            raise GraphQLResponseError(errors, data)
        return data
