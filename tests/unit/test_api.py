"""
Unit Tests - Analytics API
"""
import pytest
from fastapi.testclient import TestClient

from order_analytics.database.store import MemoryTableStore
from order_analytics.serving.api.main import create_app
from order_analytics.transformation.transformers import ETLTransformer


@pytest.fixture
def client(memory_store, reference_date) -> TestClient:
    """API client over a store the pipeline has run against"""
    ETLTransformer(memory_store, reference_date=reference_date).run()
    return TestClient(create_app(store=memory_store))


@pytest.fixture
def empty_client() -> TestClient:
    """API client over a store with no views"""
    return TestClient(create_app(store=MemoryTableStore()))


class TestHealth:
    """Tests for the health endpoint"""

    def test_healthy_when_views_built(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["checks"]["views"]["missing"] == []

    def test_degraded_before_first_run(self, empty_client):
        response = empty_client.get("/api/v1/health")

        assert response.json()["status"] == "degraded"
        assert "v_monthly_kpis" in response.json()["checks"]["views"]["missing"]


class TestAnalyticsEndpoints:
    """Tests for the view endpoints"""

    def test_monthly_kpis(self, client):
        response = client.get("/api/v1/analytics/monthly-kpis")

        assert response.status_code == 200
        data = response.json()
        assert [row["month_start"] for row in data] == ["2018-01-01", "2018-02-01"]
        assert data[0]["order_count"] == 2
        assert data[0]["revenue"] == pytest.approx(167.0)

    def test_monthly_kpis_range(self, client):
        response = client.get("/api/v1/analytics/monthly-kpis", params={"start_month": "2018-02-01"})

        assert [row["month_start"] for row in response.json()] == ["2018-02-01"]

    def test_top_states(self, client):
        response = client.get("/api/v1/analytics/top-states")

        assert [row["customer_state"] for row in response.json()] == ["SP", "SP"]

    def test_city_revenue_filter_and_limit(self, client):
        response = client.get("/api/v1/analytics/city-revenue", params={"limit": 1})

        assert response.json() == [
            {"customer_state": "SP", "customer_city": "sao paulo", "revenue": 160.0, "order_count": 2}
        ]

        response = client.get("/api/v1/analytics/city-revenue", params={"state": "RJ"})
        assert [row["customer_city"] for row in response.json()] == ["rio de janeiro"]

    def test_recent_orders(self, client):
        response = client.get("/api/v1/analytics/recent-orders", params={"limit": 2})

        data = response.json()
        assert [row["order_id"] for row in data] == ["o5", "o4"]
        assert data[0]["gross_order_value"] is None
        assert data[1]["item_count"] == 2

    def test_unbuilt_view_is_404(self, empty_client):
        response = empty_client.get("/api/v1/analytics/monthly-kpis")

        assert response.status_code == 404
        assert "v_monthly_kpis" in response.json()["detail"]

    def test_request_id_header(self, client):
        response = client.get("/api/v1/analytics/top-states", headers={"X-Request-ID": "abc"})

        assert response.headers["X-Request-ID"] == "abc"
