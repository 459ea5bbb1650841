import json
import logging
from typing import TYPE_CHECKING, Any

from .exceptions import ShopifyClientError
from .models import Collection, LineItem, Location, Metafield, Order, WebhookSubscription
from .pagination import Page
from .reconstruct import Shape

if TYPE_CHECKING:
    from .client import ShopifyGraphQLClient

COLLECTION_PRODUCTS_PAGE_SIZE = 250
WEBHOOKS_PAGE_SIZE = 50


class ResourceService:
    def __init__(self, client: "ShopifyGraphQLClient"):
        self.client = client
        self.logger = logging.getLogger(__name__)

    def _load(self, query_name: str) -> str:
        return self.client.query_loader.load_query(query_name)


class CollectionService(ResourceService):
    def list_all(self) -> list[Collection]:
        """All collections via a bulk operation"""
        query = self._load("ListCollectionsBulk")
        return list(self.client.bulk_query(query, Shape(typename="Collection", model=Collection)))

    def get(self, collection_id: str) -> Collection | None:
        """
        Get a collection with all of its product ids

        The nested ``products`` connection is walked with cursor pagination until exhausted.
        """
        query = self._load("GetCollection")
        data = self.client.execute_query(query, {"id": collection_id, "first": COLLECTION_PRODUCTS_PAGE_SIZE})
        collection = data.get("collection")
        if collection is None:
            return None

        connection = collection.pop("products", None) or {}
        edges = connection.get("edges") or []
        products = [edge["node"] for edge in edges]
        has_more = bool((connection.get("pageInfo") or {}).get("hasNextPage")) and bool(edges)
        cursor = edges[-1].get("cursor") if edges else None

        while has_more:
            page = self.client.list_after(
                query,
                "collection.products",
                cursor=cursor,
                page_size=COLLECTION_PRODUCTS_PAGE_SIZE,
                variables={"id": collection_id},
            )
            products.extend(page.items)
            has_more = page.has_more and bool(page.items)
            cursor = page.next_cursor

        collection["products"] = products
        return Collection.model_validate(collection)

    def create(self, collection_input: dict[str, Any]) -> str:
        """Create a collection and return its id"""
        payload = self.client.mutate(self._load("CollectionCreate"), {"input": collection_input}, "collectionCreate")
        return (payload.get("collection") or {}).get("id")

    def create_bulk(self, collection_inputs: list[dict[str, Any]]) -> list[str]:
        """
        Create many collections one by one

        A failing item is logged and skipped; the remaining items are still created.
        """
        created = []
        for collection_input in collection_inputs:
            try:
                created.append(self.create(collection_input))
            except ShopifyClientError as e:
                self.logger.warning(f"Couldn't create collection ({collection_input}): {e}")
        return created

    def update(self, collection_input: dict[str, Any]) -> None:
        self.client.mutate(self._load("CollectionUpdate"), {"input": collection_input}, "collectionUpdate")


class OrderService(ResourceService):
    ORDER_SHAPE_CHILDREN = {"lineItems": Shape(typename="LineItem")}

    def search(self, search_query: str | None = None) -> list[Order]:
        """Orders matching ``search_query`` (Shopify search syntax) via a bulk operation"""
        query = self._load("ListOrdersBulk")
        search = f"(query: {json.dumps(search_query)})" if search_query else ""
        query = query.replace("__SEARCH_QUERY__", search)
        shape = Shape(typename="Order", children=dict(self.ORDER_SHAPE_CHILDREN), model=Order)
        return list(self.client.bulk_query(query, shape))

    def list_all(self) -> list[Order]:
        return self.search()

    def list_after_cursor(
        self,
        search_query: str | None = None,
        cursor: str | None = None,
        page_size: int = 50,
        backward: bool = False,
        reverse: bool = False,
    ) -> Page:
        """One page of orders; line items are capped at the first 25 per order"""
        variables = {"query": search_query, "reverse": reverse}
        page = self.client.list_after(
            self._load("ListOrders"), "orders", cursor, page_size, backward=backward, variables=variables
        )
        orders = [self._order_from_node(node) for node in page.items]
        return Page(items=orders, next_cursor=page.next_cursor, has_more=page.has_more)

    def get(self, order_id: str) -> Order | None:
        """Get one order with its first 50 line items"""
        data = self.client.execute_query(self._load("GetOrder"), {"id": order_id})
        node = data.get("node")
        return self._order_from_node(node) if node else None

    def update(self, order_input: dict[str, Any]) -> None:
        self.client.mutate(self._load("OrderUpdate"), {"input": order_input}, "orderUpdate")

    @staticmethod
    def _order_from_node(node: dict[str, Any]) -> Order:
        node = dict(node)
        line_items = node.pop("lineItems", None) or {}
        node["lineItems"] = [LineItem.model_validate(edge["node"]) for edge in line_items.get("edges") or []]
        return Order.model_validate(node)


class MetafieldService(ResourceService):
    def list_shop_metafields(self, namespace: str | None = None) -> list[Metafield]:
        """Shop metafields, optionally limited to one namespace, via a bulk operation"""
        query = self._load("ListShopMetafieldsBulk")
        namespace_filter = f"(namespace: {json.dumps(namespace)})" if namespace else ""
        query = query.replace("__NAMESPACE_FILTER__", namespace_filter)
        return list(self.client.bulk_query(query, Shape(typename="Metafield", model=Metafield)))

    def get_shop_metafield_by_key(self, namespace: str, key: str) -> Metafield | None:
        data = self.client.execute_query(self._load("GetShopMetafieldByKey"), {"namespace": namespace, "key": key})
        metafield = (data.get("shop") or {}).get("metafield")
        return Metafield.model_validate(metafield) if metafield else None

    def delete(self, owner_id: str, namespace: str, key: str) -> None:
        identifier = {"ownerId": owner_id, "namespace": namespace, "key": key}
        self.client.mutate(self._load("MetafieldsDelete"), {"metafields": [identifier]}, "metafieldsDelete")

    def delete_bulk(self, identifiers: list[dict[str, str]]) -> int:
        """
        Delete many metafields one by one, logging and skipping failures

        Returns:
            Number of metafields deleted
        """
        deleted = 0
        for identifier in identifiers:
            try:
                self.delete(identifier["ownerId"], identifier["namespace"], identifier["key"])
                deleted += 1
            except ShopifyClientError as e:
                self.logger.warning(f"Couldn't delete metafield ({identifier}): {e}")
        return deleted


class LocationService(ResourceService):
    def get(self, location_id: str) -> Location | None:
        data = self.client.execute_query(self._load("GetLocation"), {"id": location_id})
        location = data.get("location")
        return Location.model_validate(location) if location else None


class VariantService(ResourceService):
    def update(self, variant_input: dict[str, Any]) -> None:
        self.client.mutate(self._load("ProductVariantUpdate"), {"input": variant_input}, "productVariantUpdate")


class WebhookService(ResourceService):
    def create(self, topic: str, subscription_input: dict[str, Any]) -> str:
        """
        Subscribe an HTTP endpoint to ``topic``

        Args:
            topic: Webhook topic enum value, e.g. ``ORDERS_CREATE``
            subscription_input: ``WebhookSubscriptionInput`` fields (``callbackUrl``, ``format``, ...)

        Returns:
            Id of the new subscription
        """
        payload = self.client.mutate(
            self._load("WebhookSubscriptionCreate"),
            {"topic": topic, "input": subscription_input},
            "webhookSubscriptionCreate",
        )
        return (payload.get("webhookSubscription") or {}).get("id")

    def create_event_bridge(self, topic: str, subscription_input: dict[str, Any]) -> str:
        """Subscribe an Amazon EventBridge source (``arn``) to ``topic``"""
        payload = self.client.mutate(
            self._load("EventBridgeWebhookSubscriptionCreate"),
            {"topic": topic, "input": subscription_input},
            "eventBridgeWebhookSubscriptionCreate",
        )
        return (payload.get("webhookSubscription") or {}).get("id")

    def delete(self, webhook_id: str) -> str:
        payload = self.client.mutate(
            self._load("WebhookSubscriptionDelete"), {"id": webhook_id}, "webhookSubscriptionDelete"
        )
        return payload.get("deletedWebhookSubscriptionId")

    def list_all(self) -> list[WebhookSubscription]:
        subscriptions = []
        for batch in self.client.paginate(
            self._load("ListWebhookSubscriptions"), "webhookSubscriptions", WEBHOOKS_PAGE_SIZE
        ):
            subscriptions.extend(WebhookSubscription.model_validate(node) for node in batch)
        self.logger.debug(f"Found {len(subscriptions)} webhook subscriptions")
        return subscriptions
