import os

import httpx
import pytest

from financeflow.core.dependencies import get_db, get_gmail_service, get_sync_registry
from financeflow.integrations.gmail.service import GmailService
from financeflow.main import app
from financeflow.modules.sync.pipeline import SyncPipeline
from financeflow.modules.sync.scheduler import SyncSchedulerRegistry
from financeflow.modules.transactions.scorer import ConfidenceScorer, ScoringWeights
from tests.factories import (
    CLEAN_ALERT,
    LOW_CONFIDENCE_ALERT,
    FakeFetcher,
    make_email,
    write_token,
)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(
        [make_email("m-1", CLEAN_ALERT), make_email("m-low", LOW_CONFIDENCE_ALERT)]
    )


@pytest.fixture
async def client(session_factory, fetcher):
    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    pipeline = SyncPipeline(
        fetcher,
        session_factory=session_factory,
        scorer=ConfidenceScorer(ScoringWeights()),
        run_timeout_seconds=30,
        auto_post=True,
    )
    registry = SyncSchedulerRegistry(pipeline, session_factory=session_factory, tick_seconds=15)

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_sync_registry] = lambda: registry
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def test_health(client):
    response = await client.get("/health", headers={"x-request-id": "req-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "request_id": "req-1"}
    assert response.headers["x-request-id"] == "req-1"


class TestSyncEndpoints:
    async def test_settings_round_trip(self, client, user):
        response = await client.get(f"/sync/{user.id}/settings")
        assert response.status_code == 200
        assert response.json()["version"] == 1
        assert response.json()["is_enabled"] is False

        response = await client.patch(
            f"/sync/{user.id}/settings",
            json={"is_enabled": True, "scan_mode": "full", "expected_version": 1},
        )
        body = response.json()
        assert response.status_code == 200
        assert body["version"] == 2
        assert body["scan_trash"] is True

    async def test_stale_settings_write_is_conflict(self, client, user):
        await client.patch(f"/sync/{user.id}/settings", json={"scan_days": 10})

        response = await client.patch(
            f"/sync/{user.id}/settings", json={"scan_days": 20, "expected_version": 1}
        )

        assert response.status_code == 409
        assert "expected version 1" in response.json()["error"]["message"]

    async def test_invalid_settings_are_rejected(self, client, user):
        response = await client.patch(f"/sync/{user.id}/settings", json={"scan_days": 0})

        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Validation failed"

    async def test_trigger_requires_enabled_sync(self, client, user, fetcher):
        response = await client.post(f"/sync/{user.id}/trigger")

        assert response.status_code == 400
        assert "not enabled" in response.json()["error"]["message"]
        assert fetcher.calls == []

        history = await client.get(f"/sync/{user.id}/history")
        assert history.json()["items"] == []

    async def test_trigger_countdown_and_history(self, client, enabled_user):
        response = await client.post(f"/sync/{enabled_user.id}/trigger")
        summary = response.json()

        assert response.status_code == 200
        assert summary["status"] == "completed"
        assert summary["sync_type"] == "manual"
        assert summary["emails_scanned"] == 2
        assert summary["imported_count"] == 2
        assert summary["queued_for_review"] == 1

        countdown = (await client.get(f"/sync/{enabled_user.id}/countdown")).json()
        assert countdown["state"] == "cooldown"
        assert 0 < countdown["seconds"] <= 30 * 60

        history = (await client.get(f"/sync/{enabled_user.id}/history")).json()["items"]
        assert len(history) == 1
        assert history[0]["imported_count"] == 2

    async def test_unknown_owner(self, client):
        response = await client.get("/sync/999/settings")

        assert response.status_code == 404
        assert response.json() == {"error": {"message": "User 999 not found"}}

    async def test_disconnect_revokes_and_disables(
        self, client, enabled_user, tmp_path, google_transport
    ):
        token_path = write_token(tmp_path, enabled_user.id)
        app.dependency_overrides[get_gmail_service] = lambda: GmailService(
            tokens_dir=str(tmp_path)
        )
        await client.patch(
            f"/sync/{enabled_user.id}/settings", json={"linked_account": "me@gmail.com"}
        )

        response = await client.post(f"/sync/{enabled_user.id}/disconnect")
        body = response.json()

        assert response.status_code == 200
        assert body["is_enabled"] is False
        assert body["linked_account"] is None
        assert len(google_transport.calls) == 1
        assert not os.path.exists(token_path)

        trigger = await client.post(f"/sync/{enabled_user.id}/trigger")
        assert trigger.status_code == 400


class TestTransactionEndpoints:
    async def test_review_queue_approve_and_reject(self, client, enabled_user):
        await client.post(f"/sync/{enabled_user.id}/trigger")

        queue = (
            await client.get("/transactions/review-queue", params={"owner_id": enabled_user.id})
        ).json()
        assert queue["pending_count"] == 1
        [item] = queue["items"]
        assert item["merchant_name"] == "Croma"
        assert item["amount_minor"] == 125050

        response = await client.post(f"/transactions/{item['id']}/approve")
        assert response.status_code == 200
        assert response.json()["action"] == "approved"
        assert response.json()["ledger_kind"] == "expense"

        again = await client.post(f"/transactions/{item['id']}/approve")
        assert again.status_code == 409

        rejected = await client.post(f"/transactions/{item['id']}/reject")
        assert rejected.status_code == 409

        queue = (
            await client.get("/transactions/review-queue", params={"owner_id": enabled_user.id})
        ).json()
        assert queue["pending_count"] == 0

    async def test_unknown_transaction(self, client):
        response = await client.post("/transactions/9999/approve")

        assert response.status_code == 404
        assert response.json() == {"error": {"message": "Transaction 9999 not found"}}

    async def test_review_queue_requires_owner(self, client):
        response = await client.get("/transactions/review-queue")
        assert response.status_code == 422


class TestLedgerEndpoints:
    async def test_add_manual_expense(self, client, user):
        response = await client.post(
            f"/ledger/{user.id}/expenses",
            json={
                "amount_minor": 49500,
                "entry_date": "2025-01-11",
                "vendor": "Swiggy",
                "category": "Food & Dining",
                "payment_mode": "UPI",
            },
        )
        body = response.json()

        assert response.status_code == 201
        assert body["amount_minor"] == 49500
        assert body["vendor"] == "swiggy"
        assert body["source_transaction_id"] is None

    async def test_non_positive_amount_is_rejected(self, client, user):
        response = await client.post(
            f"/ledger/{user.id}/expenses",
            json={"amount_minor": 0, "entry_date": "2025-01-11"},
        )

        assert response.status_code == 422

    async def test_unknown_owner(self, client):
        response = await client.post(
            "/ledger/999/expenses", json={"amount_minor": 100, "entry_date": "2025-01-11"}
        )

        assert response.status_code == 404
