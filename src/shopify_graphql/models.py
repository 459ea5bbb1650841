from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ShopifyModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str


class Money(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    amount: str
    currency_code: str


class MoneyBag(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    shop_money: Money | None = None
    presentment_money: Money | None = None


class Customer(ShopifyModel):
    display_name: str | None = None
    email: str | None = None


class LineItem(ShopifyModel):
    name: str | None = None
    sku: str | None = None
    quantity: int = 0


class Order(ShopifyModel):
    legacy_resource_id: str | None = None
    name: str | None = None
    created_at: str | None = None
    note: str | None = None
    tags: list[str] = Field(default_factory=list)
    customer: Customer | None = None
    total_received_set: MoneyBag | None = None
    line_items: list[LineItem] = Field(default_factory=list)


class Collection(ShopifyModel):
    handle: str | None = None
    title: str | None = None
    products: list[dict] = Field(default_factory=list)


class Metafield(ShopifyModel):
    namespace: str
    key: str
    value: str | None = None
    type: str | None = None
    description: str | None = None
    owner_type: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class Location(ShopifyModel):
    name: str
    is_active: bool | None = None


class WebhookSubscription(ShopifyModel):
    topic: str | None = None
    endpoint: dict | None = None
    format: str | None = None
    include_fields: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
