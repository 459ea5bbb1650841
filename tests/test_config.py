import unittest

from pydantic import ValidationError

from shopify_graphql.config import AuthScheme, ClientConfig
from shopify_graphql.exceptions import ShopifyClientError


class TestClientConfig(unittest.TestCase):
    def test_access_token(self):
        config = ClientConfig(store_name="test-shop", access_token="TOKEN")

        self.assertEqual(config.auth_scheme, AuthScheme.ACCESS_TOKEN)
        self.assertEqual(config.api_version, "2025-10")
        self.assertEqual(config.shop_domain, "test-shop.myshopify.com")
        self.assertEqual(config.graphql_url, "https://test-shop.myshopify.com/admin/api/2025-10/graphql.json")

    def test_store_name_cleanup(self):
        for raw in ("test-shop.myshopify.com", "https://Test-Shop.myshopify.com/", "  test-shop  "):
            with self.subTest(raw=raw):
                self.assertEqual(ClientConfig(store_name=raw, access_token="TOKEN").store_name, "test-shop")

    def test_basic_auth(self):
        config = ClientConfig(store_name="test-shop", api_key="KEY", password="SECRET")
        self.assertEqual(config.auth_scheme, AuthScheme.BASIC)

    def test_storefront(self):
        config = ClientConfig(store_name="test-shop", api_version="2024-01", storefront_token="PUBLIC")

        self.assertEqual(config.auth_scheme, AuthScheme.STOREFRONT)
        self.assertEqual(config.graphql_url, "https://test-shop.myshopify.com/api/2024-01/graphql.json")

    def test_exactly_one_credential_set(self):
        invalid = [
            {},
            {"access_token": "TOKEN", "storefront_token": "PUBLIC"},
            {"api_key": "KEY"},
            {"api_key": "KEY", "password": "SECRET", "storefront_token": "PUBLIC"},
            {"access_token": "TOKEN", "api_key": "KEY", "password": "SECRET"},
            {"access_token": "TOKEN", "password": "SECRET"},
        ]
        for credentials in invalid:
            with self.subTest(credentials=credentials):
                with self.assertRaises(ShopifyClientError) as ctx:
                    ClientConfig(store_name="test-shop", **credentials)
                self.assertIn("Invalid client configuration", str(ctx.exception))

    def test_token_and_basic_auth_are_exclusive(self):
        with self.assertRaises(ShopifyClientError) as ctx:
            ClientConfig(store_name="test-shop", access_token="TOKEN", api_key="KEY", password="SECRET")
        self.assertIn("Exactly one of", str(ctx.exception))

    def test_unknown_api_version(self):
        with self.assertRaises(ShopifyClientError) as ctx:
            ClientConfig(store_name="test-shop", api_version="not-a-version", access_token="TOKEN")
        self.assertIn("not-a-version", str(ctx.exception))

    def test_empty_store_name(self):
        with self.assertRaises(ShopifyClientError):
            ClientConfig(store_name=" ", access_token="TOKEN")

    def test_settings_are_frozen(self):
        config = ClientConfig(store_name="test-shop", access_token="TOKEN")
        with self.assertRaises(ValidationError):
            config.access_token = "OTHER"

    def test_operational_defaults(self):
        config = ClientConfig(store_name="test-shop", access_token="TOKEN")
        self.assertEqual(config.timeout, 30.0)
        self.assertEqual(config.max_retries, 5)
        self.assertEqual(config.poll_interval, 5.0)


if __name__ == "__main__":
    unittest.main()
