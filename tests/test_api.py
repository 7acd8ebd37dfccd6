"""
Tests de integración para endpoints de la API.
"""

import httpx
import pytest
from httpx import AsyncClient

from app.adapters import get_payment_gateway
from app.main import app
from app.utils.idempotency import (
    InMemoryIdempotencyManager,
    get_idempotency_manager_with_fallback,
)


class RecordingIdempotencyManager(InMemoryIdempotencyManager):
    """Registra el orden de las operaciones sobre cache y lock."""

    def __init__(self):
        super().__init__()
        self.calls: list[str] = []

    async def cache_response(self, key, response, **kwargs):
        self.calls.append("cache")
        return await super().cache_response(key, response, **kwargs)

    async def release_lock(self, key):
        self.calls.append("release")
        await super().release_lock(key)


async def create_checkout(client: AsyncClient, data: dict) -> dict:
    response = await client.post("/api/payments/create", json=data)
    assert response.status_code == 201
    return response.json()["data"]


class TestHealthEndpoints:
    """Tests para endpoints de salud."""

    @pytest.mark.asyncio
    async def test_root_endpoint(self, client: AsyncClient):
        """Test endpoint raíz."""
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert "version" in data

    @pytest.mark.asyncio
    async def test_health_endpoint(self, client: AsyncClient):
        """Test endpoint de health check."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["payos_mode"] in ("mock", "live")

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestPaymentEndpoints:
    """Tests para endpoints de pagos (PayOS en modo mock)."""

    @pytest.mark.asyncio
    async def test_create_payment(self, client: AsyncClient, sample_checkout_data):
        """Test crear un pago."""
        response = await client.post("/api/payments/create", json=sample_checkout_data)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["payment_url"] == f"http://localhost:3000/api/payments/mock-pay/{data['order_code']}"
        assert len(data["enrollment_ids"]) == 1

    @pytest.mark.asyncio
    async def test_create_batch_payment(self, client: AsyncClient, sample_batch_checkout_data):
        """Cursos repetidos se cuentan una sola vez."""
        data = await create_checkout(client, sample_batch_checkout_data)

        response = await client.get(f"/api/payments/{data['payment_id']}")

        payment = response.json()["data"]
        assert payment["amount"] == 125000
        assert payment["status"] == "PENDING"
        assert payment["currency"] == "VND"
        assert len(payment["enrollment_ids"]) == 2

    @pytest.mark.asyncio
    async def test_create_payment_with_idempotency(
        self, client: AsyncClient, sample_checkout_data
    ):
        """Test idempotencia al crear pagos."""
        headers = {"Idempotency-Key": "checkout-key-123"}

        response1 = await client.post(
            "/api/payments/create", json=sample_checkout_data, headers=headers
        )
        response2 = await client.post(
            "/api/payments/create", json=sample_checkout_data, headers=headers
        )

        assert response1.status_code == 201
        assert response2.status_code == 201
        assert response1.json()["data"]["order_code"] == response2.json()["data"]["order_code"]
        assert "idempotent" in response2.json()["message"]

    @pytest.mark.asyncio
    async def test_idempotency_caches_before_releasing_lock(
        self, client: AsyncClient, sample_checkout_data
    ):
        """La respuesta queda cacheada antes de liberar el lock."""
        manager = RecordingIdempotencyManager()
        app.dependency_overrides[get_idempotency_manager_with_fallback] = lambda: manager

        response = await client.post(
            "/api/payments/create",
            json=sample_checkout_data,
            headers={"Idempotency-Key": "k1"},
        )

        assert response.status_code == 201
        assert manager.calls == ["cache", "release"]

    @pytest.mark.asyncio
    async def test_idempotency_lock_released_on_conflict(
        self, client: AsyncClient, sample_checkout_data
    ):
        """Tras un 409 por inscripción activa la clave queda libre."""
        created = await create_checkout(client, sample_checkout_data)
        await client.get(f"/api/payments/mock-pay/{created['order_code']}")
        headers = {"Idempotency-Key": "retry-after-conflict"}

        first = await client.post("/api/payments/create", json=sample_checkout_data, headers=headers)
        retry = await client.post("/api/payments/create", json=sample_checkout_data, headers=headers)

        assert first.status_code == 409
        assert retry.status_code == 409
        assert retry.json()["detail"] == first.json()["detail"]
        assert "already being processed" not in retry.json()["detail"]

    @pytest.mark.asyncio
    async def test_create_docs_require_trusted_caller(self, client: AsyncClient):
        response = await client.get("/openapi.json")

        description = response.json()["paths"]["/api/payments/create"]["post"]["description"]
        assert "confianza" in description

    @pytest.mark.asyncio
    async def test_create_payment_invalid(self, client: AsyncClient):
        response = await client.post("/api/payments/create", json={"user_id": 7, "items": []})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_payment_not_found(self, client: AsyncClient):
        response = await client.get("/api/payments/999999")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_mock_pay_completes_payment(self, client: AsyncClient, sample_checkout_data):
        created = await create_checkout(client, sample_checkout_data)

        response = await client.get(f"/api/payments/mock-pay/{created['order_code']}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["success"] is True
        assert data["status"] == "COMPLETED"

        payment = (await client.get(f"/api/payments/{created['payment_id']}")).json()["data"]
        assert payment["status"] == "COMPLETED"
        assert payment["paid_at"] is not None

    @pytest.mark.asyncio
    async def test_mock_pay_unknown_order(self, client: AsyncClient):
        response = await client.get("/api/payments/mock-pay/123456")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_already_enrolled(self, client: AsyncClient, sample_checkout_data):
        created = await create_checkout(client, sample_checkout_data)
        await client.get(f"/api/payments/mock-pay/{created['order_code']}")

        response = await client.post("/api/payments/create", json=sample_checkout_data)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_creation_failure(self, client: AsyncClient, make_live_gateway, sample_checkout_data):
        """Si PayOS rechaza el link se responde 400 sin exponer la causa."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": "20", "desc": "Secret detail"})

        live = make_live_gateway(handler)
        app.dependency_overrides[get_payment_gateway] = lambda: live

        response = await client.post("/api/payments/create", json=sample_checkout_data)

        assert response.status_code == 400
        assert "Secret detail" not in response.text


class TestVerifyEndpoint:
    """Tests para la verificación de pagos."""

    @pytest.mark.asyncio
    async def test_verify_pending(self, client: AsyncClient, sample_checkout_data):
        created = await create_checkout(client, sample_checkout_data)

        response = await client.get(
            f"/api/payments/verify/{created['order_code']}", params={"user_id": 7}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "PENDING"
        assert data["success"] is False

    @pytest.mark.asyncio
    async def test_verify_completed(self, client: AsyncClient, sample_checkout_data):
        created = await create_checkout(client, sample_checkout_data)
        await client.get(f"/api/payments/mock-pay/{created['order_code']}")

        response = await client.get(
            f"/api/payments/verify/{created['order_code']}", params={"user_id": 7}
        )

        data = response.json()["data"]
        assert data["success"] is True
        assert data["enrollment_ids"] == created["enrollment_ids"]

    @pytest.mark.asyncio
    async def test_verify_other_user(self, client: AsyncClient, sample_checkout_data):
        created = await create_checkout(client, sample_checkout_data)

        response = await client.get(
            f"/api/payments/verify/{created['order_code']}", params={"user_id": 8}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_verify_unknown_order(self, client: AsyncClient):
        response = await client.get("/api/payments/verify/123456", params={"user_id": 7})

        assert response.status_code == 404


class TestRefundEndpoint:
    """Tests para reembolsos."""

    @pytest.mark.asyncio
    async def test_refund_completed(self, client: AsyncClient, sample_checkout_data):
        created = await create_checkout(client, sample_checkout_data)
        await client.get(f"/api/payments/mock-pay/{created['order_code']}")

        response = await client.post(f"/api/payments/{created['payment_id']}/refund")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "REFUNDED"

    @pytest.mark.asyncio
    async def test_refund_pending(self, client: AsyncClient, sample_checkout_data):
        created = await create_checkout(client, sample_checkout_data)

        response = await client.post(f"/api/payments/{created['payment_id']}/refund")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_refund_not_found(self, client: AsyncClient):
        response = await client.post("/api/payments/999999/refund")

        assert response.status_code == 404


class TestPayOSWebhook:
    """Tests para el webhook de PayOS."""

    @pytest.mark.asyncio
    async def test_webhook_completes_payment(
        self, client: AsyncClient, mock_gateway, sample_checkout_data
    ):
        created = await create_checkout(client, sample_checkout_data)
        body = mock_gateway.build_mock_webhook_payload(created["order_code"], 50000)

        response = await client.post("/api/webhooks/payos", json=body)

        assert response.status_code == 200
        assert response.json()["message"] == "Payment completed"

        # Reintento de PayOS: sin efecto
        retry = await client.post("/api/webhooks/payos", json=body)
        assert retry.status_code == 200
        assert retry.json()["message"] == "Already processed"

    @pytest.mark.asyncio
    async def test_webhook_invalid_signature(
        self, client: AsyncClient, make_live_gateway, sample_checkout_data
    ):
        """En modo live una firma inválida responde 403."""
        created = await create_checkout(client, sample_checkout_data)
        live = make_live_gateway(lambda request: httpx.Response(500))
        app.dependency_overrides[get_payment_gateway] = lambda: live

        body = live.build_mock_webhook_payload(created["order_code"], 50000)
        body["signature"] = "0" * 64

        response = await client.post("/api/webhooks/payos", json=body)

        assert response.status_code == 403
        assert response.json()["detail"] == "Webhook verification failed: invalid signature"

    @pytest.mark.asyncio
    async def test_webhook_invalid_json(self, client: AsyncClient):
        response = await client.post(
            "/api/webhooks/payos",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_webhook_malformed(self, client: AsyncClient):
        response = await client.post("/api/webhooks/payos", json={"code": "00"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_webhook_unknown_order(self, client: AsyncClient, mock_gateway):
        body = mock_gateway.build_mock_webhook_payload(123456, 50000)

        response = await client.post("/api/webhooks/payos", json=body)

        assert response.status_code == 404
