"""Tests for the company vote and read endpoints.

Every test runs against a fresh in-memory store preloaded by conftest with
``Acme`` (worthItCount=2, generalRating=4.0 over 1 sample) and ``Globex``
(one unrelated field), and a fake clock driving rate admission.
"""

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from ratings_api.adapters.store import InMemoryAggregateStore
from ratings_api.core.app_factory import create_app
from ratings_api.core.config import AppSettings, Settings
from ratings_api.core.errors import StoreAppError

DAY = 24 * 60 * 60


class UnavailableStore(InMemoryAggregateStore):
    async def get_versioned(self, key):
        raise StoreAppError(code="store_unavailable", message="Failed to reach the data store")

    async def get_all(self):
        raise StoreAppError(code="store_unavailable", message="Failed to reach the data store")


class AlwaysConflictingStore(InMemoryAggregateStore):
    async def set_if_unchanged(self, key, expected_version, value) -> bool:
        return False


class TestVotes:
    """Mutation endpoints."""

    @pytest.mark.parametrize(
        ("path", "field", "expected"),
        [
            ("worthIt", "worthItCount", 3),
            ("notWorthIt", "notWorthItCount", 1),
            ("keepWorking", "keepWorkingCount", 1),
            ("notKeepWorking", "notKeepWorkingCount", 1),
        ],
    )
    def test_counter_votes_return_updated_record(
        self, client: TestClient, path: str, field: str, expected: int
    ) -> None:
        response = client.put(f"/company/Acme/{path}")

        assert response.status_code == 200
        body = response.json()
        assert body[field] == expected
        assert isinstance(body["lastUpdated"], int)

    def test_work_setting_vote(self, client: TestClient) -> None:
        response = client.put("/company/Acme/workSetting/hybrid")

        assert response.status_code == 200
        assert response.json()["hybridCount"] == 1

    def test_invalid_work_setting_is_rejected(
        self, client: TestClient, store: InMemoryAggregateStore
    ) -> None:
        response = client.put("/company/Acme/workSetting/office")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_enum"
        assert store.write_count == 0

    def test_general_rating_vote(self, client: TestClient) -> None:
        response = client.put("/company/Acme/generalRating", json={"rating": 5})

        assert response.status_code == 200
        body = response.json()
        assert body["generalRating"] == 4.5
        assert body["generalRatingCount"] == 2

    def test_weekly_hours_vote(self, client: TestClient) -> None:
        response = client.put("/company/Acme/weeklyHours", json={"hours": 42.5})

        assert response.status_code == 200
        body = response.json()
        assert body["weeklyHours"] == 42.5
        assert body["weeklyHoursRatingCount"] == 1

    @pytest.mark.parametrize(
        ("path", "payload"),
        [
            ("generalRating", {"rating": "5"}),
            ("generalRating", {"rating": True}),
            ("generalRating", {}),
            ("weeklyHours", {"hours": "40"}),
        ],
    )
    def test_non_numeric_samples_never_mutate(
        self, client: TestClient, store: InMemoryAggregateStore, path: str, payload: dict
    ) -> None:
        response = client.put(f"/company/Acme/{path}", json=payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_type"
        assert store.write_count == 0
        assert client.get("/company/Acme").json() == {
            "worthItCount": 2,
            "generalRating": 4.0,
            "generalRatingCount": 1,
        }

    def test_malformed_json_is_rejected(self, client: TestClient) -> None:
        response = client.put(
            "/company/Acme/generalRating",
            content=b"{rating: 5",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_body"

    def test_unknown_fields_survive_votes(self, client: TestClient) -> None:
        response = client.put("/company/Globex/workSetting/remote")

        assert response.status_code == 200
        assert response.json()["displayName"] == "Globex Corp."
        assert response.json()["remoteCount"] == 1

    def test_vote_on_unknown_company_is_not_found(
        self, client: TestClient, store: InMemoryAggregateStore
    ) -> None:
        response = client.put("/company/Initech/worthIt")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "company_not_found"
        assert store.write_count == 0
        assert client.get("/company/Initech").json() is None

    def test_vote_creates_company_when_enabled(self, store) -> None:
        app = create_app(
            Settings(app=AppSettings(create_missing_companies=True)),
            store=store,
        )
        with TestClient(app) as client:
            response = client.put("/company/Initech/keepWorking")

        assert response.status_code == 200
        assert response.json()["keepWorkingCount"] == 1

    def test_reserved_characters_in_name_are_rejected(self, client: TestClient) -> None:
        response = client.put("/company/Acme.Inc/worthIt")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_company_name"

    def test_aborted_transaction_is_a_client_error(self) -> None:
        app = create_app(
            Settings(app=AppSettings(transaction_max_attempts=2, rate_limit_enabled=False)),
            store=AlwaysConflictingStore({"Acme": {}}),
        )
        with TestClient(app) as client:
            response = client.put("/company/Acme/worthIt")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "transaction_not_committed"

    def test_store_failure_is_a_server_error_without_internals(self) -> None:
        app = create_app(
            Settings(app=AppSettings(rate_limit_enabled=False)),
            store=UnavailableStore(),
        )
        with TestClient(app) as client:
            vote = client.put("/company/Acme/worthIt")
            listing = client.get("/company")

        for response in (vote, listing):
            assert response.status_code == 500
            error = response.json()["error"]
            assert error["code"] == "store_unavailable"
            assert "details" not in error

    @pytest.mark.parametrize(
        ("path", "payload_key", "mean_key"),
        [
            ("generalRating", "rating", "generalRating"),
            ("weeklyHours", "hours", "weeklyHours"),
        ],
    )
    def test_sample_overflowing_the_mean_is_rejected(
        self,
        client: TestClient,
        store: InMemoryAggregateStore,
        path: str,
        payload_key: str,
        mean_key: str,
    ) -> None:
        first = client.put(f"/company/Globex/{path}", json={payload_key: 1e308})
        assert first.status_code == 200

        response = client.put(f"/company/Globex/{path}", json={payload_key: 1e308})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_type"
        assert store.write_count == 1
        assert client.get("/company/Globex").json()[mean_key] == 1e308

    @pytest.mark.parametrize(
        "document",
        [
            {"worthItCount": -1},
            {"hybridCount": "many"},
            {"generalRating": "high", "generalRatingCount": 1},
        ],
    )
    def test_malformed_stored_record_is_a_store_error(self, document: dict) -> None:
        store = InMemoryAggregateStore({"Broken": document})
        app = create_app(Settings(app=AppSettings(rate_limit_enabled=False)), store=store)
        with TestClient(app) as client:
            response = client.put("/company/Broken/worthIt")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "invalid_stored_record"
        assert "details" not in error
        assert store.write_count == 0


class TestRateAdmission:
    """Per-action ceilings over HTTP."""

    def test_fourth_vote_in_a_day_is_rejected(
        self, client: TestClient, store: InMemoryAggregateStore
    ) -> None:
        for _ in range(3):
            assert client.put("/company/Acme/worthIt").status_code == 200

        response = client.put("/company/Acme/worthIt")

        assert response.status_code == 429
        error = response.json()["error"]
        assert error["code"] == "rate_limit_exceeded"
        assert "24 hours" in error["message"]
        assert response.headers["Retry-After"] == str(DAY)
        assert store.write_count == 3

    def test_paired_actions_share_a_budget(self, client: TestClient) -> None:
        client.put("/company/Acme/worthIt")
        client.put("/company/Acme/notWorthIt")
        client.put("/company/Acme/worthIt")

        assert client.put("/company/Acme/notWorthIt").status_code == 429
        assert client.put("/company/Acme/keepWorking").status_code == 200

    def test_admission_precedes_validation(self, client: TestClient) -> None:
        for _ in range(3):
            assert client.put("/company/Acme/generalRating", json={"rating": "x"}).status_code == 400

        response = client.put("/company/Acme/generalRating", json={"rating": 5})

        assert response.status_code == 429

    def test_budget_returns_after_window(self, client: TestClient, fake_clock) -> None:
        for _ in range(3):
            client.put("/company/Acme/workSetting/remote")
        assert client.put("/company/Acme/workSetting/remote").status_code == 429

        fake_clock.advance(DAY)

        assert client.put("/company/Acme/workSetting/remote").status_code == 200

    def test_reads_have_their_own_ceiling(self, client: TestClient) -> None:
        for _ in range(3):
            client.put("/company/Acme/weeklyHours", json={"hours": 40})

        for _ in range(200):
            assert client.get("/company/Acme").status_code == 200
        assert client.get("/companies/sorted").status_code == 429


class TestReads:
    """Read endpoints."""

    def test_list_companies(self, client: TestClient) -> None:
        response = client.get("/company")

        assert response.status_code == 200
        assert set(response.json()) == {"Acme", "Globex"}

    def test_list_companies_when_empty(self) -> None:
        app = create_app(Settings(app=AppSettings(rate_limit_enabled=False)), store=InMemoryAggregateStore())
        with TestClient(app) as client:
            assert client.get("/company").json() == {}

    def test_get_company(self, client: TestClient) -> None:
        response = client.get("/company/Acme")

        assert response.status_code == 200
        assert response.json()["worthItCount"] == 2

    def test_get_unknown_company_returns_null(self, client: TestClient) -> None:
        response = client.get("/company/Initech")

        assert response.status_code == 200
        assert response.json() is None

    @pytest.mark.parametrize("company_id", ["Acme.Inc", "a$b", "x%231", "[Acme]"])
    def test_get_impossible_company_name_returns_null(
        self, client: TestClient, company_id: str
    ) -> None:
        response = client.get(f"/company/{company_id}")

        assert response.status_code == 200
        assert response.json() is None

    def test_sorted_listing_is_newest_first(self, client: TestClient) -> None:
        client.put("/company/Globex/worthIt")
        client.put("/company/Acme/keepWorking")

        response = client.get("/companies/sorted")

        assert response.status_code == 200
        entries = response.json()
        assert [entry["id"] for entry in entries] == ["Acme", "Globex"]
        assert entries[0]["lastUpdated"] > entries[1]["lastUpdated"]
        assert entries[0]["keepWorkingCount"] == 1
        assert entries[1]["displayName"] == "Globex Corp."

    def test_sorted_listing_is_a_snapshot(self, client: TestClient) -> None:
        client.put("/company/Acme/worthIt")
        snapshot = client.get("/companies/sorted").json()

        client.put("/company/Globex/worthIt")

        assert [entry["id"] for entry in snapshot] == ["Acme", "Globex"]
        assert "worthItCount" not in snapshot[1]

    def test_records_never_updated_sort_last(self, client: TestClient) -> None:
        client.put("/company/Acme/worthIt")

        entries = client.get("/companies/sorted").json()

        assert entries[-1]["id"] == "Globex"
        assert "lastUpdated" not in entries[-1]


class TestHttpSurface:
    def test_unknown_route_is_not_found(self, client: TestClient) -> None:
        assert client.get("/companies").status_code == 404
        assert client.put("/company/Acme/unknownVote").status_code == 404

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("GET", "/company/Acme/worthIt"),
            ("DELETE", "/company"),
            ("POST", "/company/Acme/generalRating"),
            ("PATCH", "/company/Acme/workSetting/remote"),
        ],
    )
    def test_unsupported_method_on_known_path_is_not_found(
        self, client: TestClient, store: InMemoryAggregateStore, method: str, path: str
    ) -> None:
        response = client.request(method, path)

        assert response.status_code == 404
        assert response.json() == {"detail": "Not Found"}
        assert store.write_count == 0

    def test_cors_allows_any_origin(self, client: TestClient) -> None:
        response = client.get("/company/Acme", headers={"Origin": "https://example.org"})

        assert response.headers["access-control-allow-origin"] == "*"

    def test_health_is_not_rate_limited(self, client: TestClient) -> None:
        for _ in range(250):
            assert client.get("/health").status_code == 200


def test_concurrent_http_votes_are_all_counted(store: InMemoryAggregateStore) -> None:
    app = create_app(Settings(app=AppSettings(rate_limit_enabled=False)), store=store)
    submissions = 20

    async def _submit_all() -> list[httpx.Response]:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            return await asyncio.gather(
                *(client.put("/company/Acme/worthIt") for _ in range(submissions))
            )

    responses = asyncio.run(_submit_all())

    assert all(response.status_code == 200 for response in responses)
    assert asyncio.run(store.get("Acme"))["worthItCount"] == 2 + submissions
