import logging

from keboola.component.exceptions import UserException
from pydantic import BaseModel, Field, ValidationError, field_validator

from shopify_graphql import ClientConfig, Shape
from shopify_graphql.config import DEFAULT_API_VERSION


def _sanitize_name(v: str, kind: str) -> str:
    if not v or len(v.strip()) == 0:
        raise UserException(f"{kind} name cannot be empty")
    return v.strip().lower().replace(" ", "_").replace("-", "_")


class BulkQuery(BaseModel):
    """GraphQL query exported through a bulk operation"""

    name: str = Field(..., description="Query name (used for output table name)")
    query: str = Field(..., description="GraphQL query run by bulkOperationRunQuery")
    shape: dict = Field(
        default_factory=dict,
        description='Child connections, e.g. {"lineItems": {"typename": "LineItem", "children": {}}}',
    )

    @field_validator("name")
    def validate_name(cls, v):
        return _sanitize_name(v, "Bulk query")

    @field_validator("query")
    def validate_query(cls, v):
        if not v or len(v.strip()) == 0:
            raise UserException("Bulk query cannot be empty")
        return v.strip()

    @property
    def result_shape(self) -> Shape:
        return Shape.from_dict(self.shape)


class ListQuery(BaseModel):
    """Paginated GraphQL query, fetched page by page with cursors"""

    name: str = Field(..., description="Query name (used for output table name)")
    query: str = Field(..., description="GraphQL query declaring $first and $after")
    data_key: str = Field(..., description="Path to the connection in the response data, dotted if nested")
    page_size: int = Field(default=50, ge=1, le=250, description="Number of records per page")
    variables: dict = Field(default_factory=dict, description="Additional query variables")

    @field_validator("name")
    def validate_name(cls, v):
        return _sanitize_name(v, "List query")


class Configuration(BaseModel):
    store_name: str = Field(..., description="Shopify store name (without .myshopify.com)")
    api_version: str = Field(default=DEFAULT_API_VERSION, description="Shopify API version")
    api_token: str = Field(alias="#api_token", description="Shopify Admin API access token")
    bulk_queries: list[BulkQuery] = Field(default_factory=list, description="Queries run as bulk operations")
    list_queries: list[ListQuery] = Field(default_factory=list, description="Queries fetched with pagination")
    max_retries: int = Field(default=5, ge=0, description="Retries for failing API calls")
    poll_interval: float = Field(default=5.0, ge=0, description="Seconds between bulk operation status polls")
    bulk_timeout: float | None = Field(default=None, gt=0, description="Max seconds to wait for a bulk operation")
    incremental_output: bool = Field(default=True, description="Load output tables incrementally")
    debug: bool = Field(default=False, description="Enable debug mode")

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            error_messages = [f"{err['loc'][0]}: {err['msg']}" for err in e.errors()]
            raise UserException(f"Validation Error: {', '.join(error_messages)}")

        if self.debug:
            logging.debug("Component will run in Debug mode")

    @field_validator("api_token")
    def validate_api_token(cls, v):
        if not v or len(v.strip()) == 0:
            raise UserException("API token cannot be empty")
        return v.strip()

    @field_validator("store_name")
    def validate_store_name(cls, v):
        if not v or len(v.strip()) == 0:
            raise UserException("Store name cannot be empty")
        # Remove .myshopify.com if present
        store_name = v.strip().lower()
        if store_name.endswith(".myshopify.com"):
            store_name = store_name[:-14]
        return store_name

    @property
    def shop_url(self) -> str:
        """Get the full Shopify shop URL"""
        return f"https://{self.store_name}.myshopify.com"

    def client_config(self) -> ClientConfig:
        return ClientConfig(
            store_name=self.store_name,
            api_version=self.api_version,
            access_token=self.api_token,
            max_retries=self.max_retries,
            poll_interval=self.poll_interval,
        )
