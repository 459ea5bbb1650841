import unittest

from shopify_graphql.pagination import Page, list_after, paginate

QUERY = "query ListOrders($first: Int, $after: String, $last: Int, $before: String) { orders { edges { cursor } } }"


class FakeConnection:
    """Serves a fixed list of nodes as a Relay connection under ``data_key``"""

    def __init__(self, count, data_key="orders"):
        self.nodes = [{"id": f"gid://shopify/Order/{i}"} for i in range(1, count + 1)]
        self.data_key = data_key
        self.requests = []

    def __call__(self, operation):
        variables = operation.variables
        self.requests.append(dict(variables))
        cursors = [f"cursor-{i}" for i in range(len(self.nodes))]

        if "last" in variables:
            end = cursors.index(variables["before"]) if "before" in variables else len(self.nodes)
            start = max(0, end - variables["last"])
        else:
            start = cursors.index(variables["after"]) + 1 if "after" in variables else 0
            end = min(len(self.nodes), start + variables["first"])

        connection = {
            "edges": [{"cursor": cursors[i], "node": self.nodes[i]} for i in range(start, end)],
            "pageInfo": {"hasNextPage": end < len(self.nodes), "hasPreviousPage": start > 0},
        }
        data = connection
        for key in reversed(self.data_key.split(".")):
            data = {key: data}
        return data


class TestListAfter(unittest.TestCase):
    def test_pages_concatenate_to_full_result(self):
        api = FakeConnection(5)

        collected = []
        cursor = None
        while True:
            page = list_after(api, QUERY, "orders", cursor=cursor, page_size=2)
            collected.extend(page.items)
            if not page.has_more:
                break
            cursor = page.next_cursor

        self.assertEqual(collected, list_after(api, QUERY, "orders", page_size=50).items)
        self.assertEqual(len(collected), 5)

    def test_first_page(self):
        api = FakeConnection(5)

        page = list_after(api, QUERY, "orders", page_size=2)

        self.assertEqual([n["id"] for n in page.items], ["gid://shopify/Order/1", "gid://shopify/Order/2"])
        self.assertEqual(page.next_cursor, "cursor-1")
        self.assertTrue(page.has_more)
        self.assertEqual(api.requests[0], {"first": 2})

    def test_forward_never_sends_backward_arguments(self):
        api = FakeConnection(5)
        list_after(api, QUERY, "orders", cursor="cursor-1", page_size=2, variables={"query": "status:open"})

        self.assertEqual(api.requests[0], {"query": "status:open", "first": 2, "after": "cursor-1"})

    def test_backward(self):
        api = FakeConnection(5)

        page = list_after(api, QUERY, "orders", page_size=2, backward=True)
        self.assertEqual([n["id"] for n in page.items], ["gid://shopify/Order/4", "gid://shopify/Order/5"])
        self.assertEqual(page.next_cursor, "cursor-3")
        self.assertTrue(page.has_more)

        page = list_after(api, QUERY, "orders", cursor=page.next_cursor, page_size=2, backward=True)
        self.assertEqual([n["id"] for n in page.items], ["gid://shopify/Order/2", "gid://shopify/Order/3"])
        self.assertEqual(api.requests[1], {"last": 2, "before": "cursor-3"})

    def test_empty_page(self):
        empty = {"orders": {"edges": [], "pageInfo": {"hasNextPage": False}}}
        page = list_after(lambda operation: empty, QUERY, "orders", cursor="cursor-9")
        self.assertEqual(page, Page(items=[], next_cursor="cursor-9", has_more=False))

    def test_missing_connection_is_empty(self):
        page = list_after(lambda operation: {}, QUERY, "orders")
        self.assertEqual(page.items, [])
        self.assertFalse(page.has_more)

    def test_nested_data_key(self):
        api = FakeConnection(3, data_key="collection.products")

        page = list_after(
            api, QUERY, "collection.products", page_size=2, variables={"id": "gid://shopify/Collection/1"}
        )

        self.assertEqual(len(page.items), 2)
        self.assertEqual(api.requests[0], {"id": "gid://shopify/Collection/1", "first": 2})


class TestPaginate(unittest.TestCase):
    def test_yields_batches_until_exhausted(self):
        api = FakeConnection(5)

        batches = list(paginate(api, QUERY, "orders", page_size=2))

        self.assertEqual([len(b) for b in batches], [2, 2, 1])
        self.assertEqual(len(api.requests), 3)

    def test_backward_walks_from_the_end(self):
        batches = list(paginate(FakeConnection(5), QUERY, "orders", page_size=2, backward=True))
        ids = [n["id"] for batch in batches for n in batch]
        self.assertEqual(ids[:2], ["gid://shopify/Order/4", "gid://shopify/Order/5"])
        self.assertEqual(len(ids), 5)

    def test_max_items(self):
        api = FakeConnection(5)

        batches = list(paginate(api, QUERY, "orders", page_size=2, max_items=3))

        self.assertEqual([len(b) for b in batches], [2, 1])
        self.assertEqual(len(api.requests), 2)

    def test_empty_connection(self):
        self.assertEqual(list(paginate(FakeConnection(0), QUERY, "orders")), [])


if __name__ == "__main__":
    unittest.main()
