import re
from pathlib import Path

MAP_QUERY_NAME_TO_FILE = {
    "BulkOperationRunQuery": "bulk/bulk_operations.graphql",
    "BulkOperationStatus": "bulk/bulk_operations.graphql",
    "CurrentBulkOperation": "bulk/bulk_operations.graphql",
    "BulkOperationCancel": "bulk/bulk_operations.graphql",
    "ListCollectionsBulk": "collections/collections.graphql",
    "GetCollection": "collections/collections.graphql",
    "CollectionCreate": "collections/collections.graphql",
    "CollectionUpdate": "collections/collections.graphql",
    "ListOrdersBulk": "orders/orders.graphql",
    "ListOrders": "orders/orders.graphql",
    "OrderUpdate": "orders/orders.graphql",
    "GetOrder": "orders/orders.graphql",
    "ListShopMetafieldsBulk": "metafields/metafields.graphql",
    "MetafieldsDelete": "metafields/metafields.graphql",
    "GetShopMetafieldByKey": "metafields/metafields.graphql",
    "GetLocation": "locations/locations.graphql",
    "ProductVariantUpdate": "variants/variants.graphql",
    "WebhookSubscriptionCreate": "webhooks/webhooks.graphql",
    "EventBridgeWebhookSubscriptionCreate": "webhooks/webhooks.graphql",
    "WebhookSubscriptionDelete": "webhooks/webhooks.graphql",
    "ListWebhookSubscriptions": "webhooks/webhooks.graphql",
}


class QueryLoader:
    """
    Loads GraphQL operations from external .graphql files
    """

    def __init__(self, queries_dir: str | None = None):
        """
        Initialize query loader

        Args:
            queries_dir: Path to queries directory. If None, uses default location.
        """
        if queries_dir is None:
            current_dir = Path(__file__).parent
            self.queries_dir = current_dir / "queries"
        else:
            self.queries_dir = Path(queries_dir)
        self._queries_cache: dict[str, str] = {}

    def load_query(self, query_name: str) -> str:
        """
        Load a named GraphQL query or mutation

        Args:
            query_name: Operation name, e.g. ``BulkOperationStatus``

        Returns:
            GraphQL operation string

        Raises:
            FileNotFoundError: If query file doesn't exist
            ValueError: If the operation is not found in its file
        """
        if query_name in self._queries_cache:
            return self._queries_cache[query_name]

        relative_path = MAP_QUERY_NAME_TO_FILE.get(query_name, f"{query_name}.graphql")
        query_file = self.queries_dir / relative_path

        if not query_file.exists():
            raise FileNotFoundError(f"Query file not found: {query_file}")

        with open(query_file, encoding="utf-8") as f:
            content = f.read()

        query = self._extract_query(content, query_name)
        self._queries_cache[query_name] = query

        return query

    def _extract_query(self, content: str, query_name: str) -> str:
        """
        Extract a specific operation from GraphQL file content

        Args:
            content: Full file content
            query_name: Name of the operation to extract

        Returns:
            Extracted operation string

        Raises:
            ValueError: If the operation is not found in content
        """
        header = re.compile(rf"^\s*(query|mutation)\s+{re.escape(query_name)}\b")
        query_lines = []
        in_query = False
        brace_count = 0

        for line in content.split("\n"):
            if line.strip().startswith("#"):
                continue

            if not in_query and header.match(line):
                in_query = True
                query_lines.append(line)
                brace_count += line.count("{") - line.count("}")
                continue

            if in_query:
                query_lines.append(line)
                brace_count += line.count("{")
                brace_count -= line.count("}")

                if brace_count == 0:
                    break

        if not query_lines:
            raise ValueError(f"Query '{query_name}' not found in file")

        return "\n".join(query_lines).strip()

    def get_available_queries(self) -> list[str]:
        """
        Get list of operation names known to the loader

        Returns:
            Operation names that map to an existing file
        """
        return [name for name, path in MAP_QUERY_NAME_TO_FILE.items() if (self.queries_dir / path).exists()]
