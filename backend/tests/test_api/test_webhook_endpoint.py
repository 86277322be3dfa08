"""End-to-end tests for POST /api/v1/webhooks/stripe."""

from unittest.mock import patch

import pytest
from conftest import (
    create_customer,
    encode_event,
    make_event,
    sign_payload,
    stripe_product,
    stripe_subscription,
)
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from stripe_sync.billing.store import DataStore
from stripe_sync.database import get_session_factory
from stripe_sync.exceptions import StoreError
from stripe_sync.main import app
from stripe_sync.models import Customer, Product, Subscription

URL = "/api/v1/webhooks/stripe"


async def _post(client: AsyncClient, event: dict, sig_header: str | None = None):
    body = encode_event(event)
    headers = {"Content-Type": "application/json"}
    headers["Stripe-Signature"] = sig_header if sig_header is not None else sign_payload(body)
    return await client.post(URL, content=body, headers=headers)


class TestStripeWebhook:
    @pytest.mark.asyncio
    async def test_customer_created_links_existing_row(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        await create_customer(db_session, email="a@x.com")

        response = await _post(
            client, make_event("customer.created", {"id": "cus_abc", "email": "a@x.com"})
        )

        assert response.status_code == 200
        assert response.json() == {"message": "nice!"}
        customer = await DataStore(db_session).select_single(Customer, email="a@x.com")
        assert customer.stripe_customer_id == "cus_abc"

    @pytest.mark.asyncio
    async def test_subscription_created_end_to_end(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        customer = await create_customer(db_session, stripe_customer_id="cus_123")

        response = await _post(
            client, make_event("customer.subscription.created", stripe_subscription("cus_123"))
        )

        assert response.status_code == 200
        rows = await DataStore(db_session).select(Subscription)
        assert len(rows) == 1
        assert rows[0].user_id == customer.user_id

    @pytest.mark.asyncio
    async def test_product_created_redelivered(self, client: AsyncClient, db_session: AsyncSession):
        event = make_event("product.created", stripe_product())
        first = await _post(client, event)
        second = await _post(client, event)

        assert first.status_code == second.status_code == 200
        assert len(await DataStore(db_session).select(Product)) == 1

    @pytest.mark.asyncio
    async def test_unrecognized_type_acknowledged_without_writes(self, client: AsyncClient):
        with (
            patch.object(DataStore, "insert") as insert,
            patch.object(DataStore, "update") as update,
        ):
            response = await _post(client, make_event("invoice.paid", {"id": "in_123"}))

        assert response.status_code == 200
        assert response.json() == {"message": "nice!"}
        insert.assert_not_called()
        update.assert_not_called()

    @pytest.mark.asyncio
    async def test_unrecognized_type_needs_no_database(self, client: AsyncClient):
        app.dependency_overrides[get_session_factory] = lambda: None
        response = await _post(client, make_event("invoice.paid", {"id": "in_123"}))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_bad_signature_returns_400_with_reason(self, client: AsyncClient):
        event = make_event("product.created", stripe_product())
        body = encode_event(event)

        response = await _post(client, event, sig_header=sign_payload(body, secret="whsec_wrong"))

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/plain")
        assert "signature" in response.text.lower()

    @pytest.mark.asyncio
    async def test_missing_signature_returns_400(self, client: AsyncClient):
        body = encode_event(make_event("product.created", stripe_product()))
        response = await client.post(URL, content=body)
        assert response.status_code == 400
        assert response.text == "No Stripe-Signature header provided"

    @pytest.mark.asyncio
    async def test_unknown_customer_returns_500_and_writes_nothing(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        response = await _post(
            client,
            make_event("customer.subscription.updated", stripe_subscription("cus_unknown")),
        )

        assert response.status_code == 500
        assert await DataStore(db_session).select(Subscription) == []

    @pytest.mark.asyncio
    async def test_customer_relink_returns_500_and_keeps_link(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        await create_customer(db_session, email="a@x.com", stripe_customer_id="cus_old")

        response = await _post(
            client, make_event("customer.created", {"id": "cus_new", "email": "a@x.com"})
        )

        assert response.status_code == 500
        customer = await DataStore(db_session).select_single(Customer, email="a@x.com")
        assert customer.stripe_customer_id == "cus_old"

    @pytest.mark.asyncio
    async def test_malformed_payload_returns_500(self, client: AsyncClient):
        response = await _post(client, make_event("product.created", {"id": "prod_no_name"}))
        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back(self, client: AsyncClient, db_session: AsyncSession):
        """A failure after a write leaves no partial state behind."""
        await create_customer(db_session, email="a@x.com")
        real_update = DataStore.update

        async def update_then_fail(self, *args, **kwargs):
            await real_update(self, *args, **kwargs)
            raise StoreError("connection lost")

        with patch.object(DataStore, "update", update_then_fail):
            response = await _post(
                client, make_event("customer.created", {"id": "cus_abc", "email": "a@x.com"})
            )

        assert response.status_code == 500
        customer = await DataStore(db_session).select_single(Customer, email="a@x.com")
        assert customer.stripe_customer_id is None

    @pytest.mark.asyncio
    async def test_unconfigured_store_fails_on_first_use(self, client: AsyncClient):
        app.dependency_overrides[get_session_factory] = lambda: None
        response = await _post(client, make_event("product.created", stripe_product()))
        assert response.status_code == 500


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
