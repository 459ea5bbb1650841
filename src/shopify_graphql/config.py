from enum import Enum

import shopify
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from shopify.api_version import ApiVersion, VersionNotFoundError

from .exceptions import ShopifyClientError

ACCESS_TOKEN_HEADER = "X-Shopify-Access-Token"
STOREFRONT_TOKEN_HEADER = "X-Shopify-Storefront-Access-Token"
DEFAULT_API_VERSION = "2025-10"


class AuthScheme(str, Enum):
    ACCESS_TOKEN = "access_token"
    BASIC = "basic"
    STOREFRONT = "storefront"


class ClientConfig(BaseModel):
    """
    Immutable per-client settings: store, API version and exactly one credential set.

    Nothing here is mutated after construction, so a single client can be shared by
    concurrent calls and several clients never influence each other.
    """

    model_config = ConfigDict(frozen=True)

    store_name: str = Field(..., description="Shopify store name (without .myshopify.com)")
    api_version: str = Field(default=DEFAULT_API_VERSION, description="Shopify API version")
    access_token: str | None = Field(default=None, description="Admin API access token")
    api_key: str | None = Field(default=None, description="Private app API key (basic auth)")
    password: str | None = Field(default=None, description="Private app password (basic auth)")
    storefront_token: str | None = Field(default=None, description="Storefront API access token")
    timeout: float = Field(default=30.0, gt=0, description="HTTP request timeout in seconds")
    max_retries: int = Field(default=5, ge=0, description="Retries for a failing call")
    poll_interval: float = Field(default=5.0, ge=0, description="Seconds between bulk operation polls")

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            error_messages = [f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()]
            raise ShopifyClientError(f"Invalid client configuration: {', '.join(error_messages)}")

    @field_validator("store_name")
    def validate_store_name(cls, v):
        if not v or len(v.strip()) == 0:
            raise ValueError("Store name cannot be empty")
        store_name = v.strip().lower()
        store_name = store_name.removeprefix("https://").removeprefix("http://").rstrip("/")
        if store_name.endswith(".myshopify.com"):
            store_name = store_name[:-14]
        return store_name

    @field_validator("api_version")
    def validate_api_version(cls, v):
        try:
            ApiVersion.coerce_to_version(v)
        except VersionNotFoundError:
            raise ValueError(f"Unknown Shopify API version '{v}'")
        return v

    @model_validator(mode="after")
    def validate_credentials(self):
        if bool(self.api_key) != bool(self.password):
            raise ValueError("api_key and password must be configured together")
        schemes = [bool(self.access_token), bool(self.api_key), bool(self.storefront_token)]
        if sum(schemes) != 1:
            raise ValueError(
                "Exactly one of access_token, api_key + password or storefront_token must be configured"
            )
        return self

    @property
    def auth_scheme(self) -> AuthScheme:
        if self.api_key:
            return AuthScheme.BASIC
        if self.storefront_token:
            return AuthScheme.STOREFRONT
        return AuthScheme.ACCESS_TOKEN

    @property
    def shop_domain(self) -> str:
        return f"{self.store_name}.myshopify.com"

    @property
    def graphql_url(self) -> str:
        """GraphQL endpoint for the configured API (admin or storefront)"""
        session = shopify.Session(self.shop_domain, self.api_version)
        if self.auth_scheme == AuthScheme.STOREFRONT:
            return f"{session.protocol}://{session.url}/api/{session.version.name}/graphql.json"
        return f"{session.site}/graphql.json"
