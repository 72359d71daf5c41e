"""Tests for the JSON scan endpoint and the scan page."""

import re

import pytest


class TestUpdateStockEndpoint:

    async def test_success_returns_transaction_result(self, client, notion_stub):
        notion_stub.add_page("page-a", "Filter A", quantity=3, price=5.0, total=10, monthly=2)

        response = await client.get("/api/updateStock", params={"product": "Filter A"})

        assert response.status_code == 200
        assert response.json() == {
            "productName": "Filter A",
            "previousQuantity": 3,
            "newQuantity": 2,
            "totalConsumed": 11,
            "monthlyConsumed": 3,
            "unitPrice": 5.0,
            "remainingValue": 10.0,
            "stockStatus": "low-stock",
            "replayed": False,
        }

    @pytest.mark.parametrize("params", [{}, {"product": ""}])
    async def test_missing_product_is_400_before_any_call(self, client, notion_stub, fake_redis, params):
        response = await client.get("/api/updateStock", params=params)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing 'product' parameter"}
        assert notion_stub.queries == []
        assert fake_redis.commands == []

    async def test_unknown_product_is_404_without_write(self, client, notion_stub):
        response = await client.get("/api/updateStock", params={"product": "Ghost"})

        assert response.status_code == 404
        assert response.json() == {"error": "Product 'Ghost' not found in database"}
        assert notion_stub.updates == []

    async def test_store_failure_is_500_with_message(self, client, notion_stub):
        notion_stub.query_failure = (503, "service unavailable")

        response = await client.get("/api/updateStock", params={"product": "Filter A"})

        assert response.status_code == 500
        assert response.json() == {"error": "Notion query failed: service unavailable"}

    async def test_update_failure_is_500(self, client, notion_stub):
        notion_stub.add_page("page-a", "Filter A", quantity=3)
        notion_stub.update_failure = (500, "internal")

        response = await client.get("/api/updateStock", params={"product": "Filter A"})

        assert response.status_code == 500
        assert response.json() == {"error": "Notion update failed: internal"}

    async def test_repeated_scan_token_is_replayed(self, client, notion_stub):
        notion_stub.add_page("page-b", "Filter B", quantity=10)
        params = {"product": "Filter B", "scan": "abc"}

        first = await client.get("/api/updateStock", params=params)
        second = await client.get("/api/updateStock", params=params)

        assert first.json()["newQuantity"] == second.json()["newQuantity"] == 9
        assert second.json()["replayed"] is True
        assert len(notion_stub.updates) == 1

    async def test_in_flight_token_is_409(self, client, fake_redis):
        fake_redis.data["scan:token:abc"] = "pending"

        response = await client.get("/api/updateStock", params={"product": "Filter B", "scan": "abc"})

        assert response.status_code == 409


async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "healthy"}


class TestScanPage:

    async def test_landing_page_is_loading_and_forwards_with_token(self, client, notion_stub):
        response = await client.get("/", params={"product": "Filter A"})

        assert response.status_code == 200
        assert "Processing..." in response.text
        match = re.search(r'url=(/scan\?product=Filter\+A&amp;scan=[0-9a-f]{32})"', response.text)
        assert match
        assert notion_stub.queries == []

    async def test_landing_page_issues_fresh_token_each_time(self, client):
        first = await client.get("/", params={"product": "Filter A"})
        second = await client.get("/", params={"product": "Filter A"})

        token = re.compile(r"scan=([0-9a-f]{32})")
        assert token.search(first.text).group(1) != token.search(second.text).group(1)

    async def test_landing_page_without_product_is_error(self, client):
        response = await client.get("/")

        assert response.status_code == 400
        assert "No product specified in URL" in response.text
        assert "Try Again" in response.text

    async def test_scan_renders_success(self, client, notion_stub):
        notion_stub.add_page("page-b", "Filter B", quantity=10, price=2.5, total=0, monthly=0)

        response = await client.get("/scan", params={"product": "Filter B", "scan": "t1"})

        assert response.status_code == 200
        assert "Stock Updated!" in response.text
        assert "9 units" in response.text
        assert "22.50&euro;" in response.text

    async def test_scan_renders_low_stock(self, client, notion_stub):
        notion_stub.add_page("page-a", "Filter A", quantity=3, price=5.0, total=10, monthly=2)

        response = await client.get("/scan", params={"product": "Filter A", "scan": "t1"})

        assert "Low Stock Alert!" in response.text
        assert "Time to restock!" in response.text

    async def test_reloading_result_page_does_not_decrement_again(self, client, notion_stub):
        notion_stub.add_page("page-b", "Filter B", quantity=10)
        params = {"product": "Filter B", "scan": "t1"}

        await client.get("/scan", params=params)
        reload = await client.get("/scan", params=params)

        assert "9 units" in reload.text
        assert notion_stub.number("page-b", "Quantity") == 9

    async def test_scan_error_renders_message(self, client):
        response = await client.get("/scan", params={"product": "Ghost", "scan": "t1"})

        assert response.status_code == 404
        assert "Product &#x27;Ghost&#x27; not found in database" in response.text
        assert "window.location.reload()" in response.text

    async def test_scan_without_token_goes_back_to_landing(self, client, notion_stub):
        response = await client.get("/scan", params={"product": "Filter B"})

        assert response.status_code == 303
        assert response.headers["location"] == "/?product=Filter+B"
        assert notion_stub.queries == []


def _redis_down(command, key, value):
    return True


class TestRedisUnavailable:

    async def test_json_endpoint_reports_error_body(self, client, fake_redis, notion_stub):
        fake_redis.fail_when = _redis_down

        response = await client.get("/api/updateStock", params={"product": "Filter B", "scan": "abc"})

        assert response.status_code == 503
        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["error"].startswith("Scan guard unavailable")
        assert notion_stub.queries == []

    async def test_scan_page_shows_error_state(self, client, fake_redis):
        fake_redis.fail_when = _redis_down

        response = await client.get("/scan", params={"product": "Filter B", "scan": "abc"})

        assert response.status_code == 503
        assert "Scan guard unavailable" in response.text
        assert "Try Again" in response.text


async def test_scan_page_without_product_uses_page_message(client, fake_redis):
    response = await client.get("/scan", params={"scan": "abc"})

    assert response.status_code == 400
    assert "No product specified in URL" in response.text
    assert fake_redis.commands == []
