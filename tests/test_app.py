from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.samples import SampleStore, build_default_store
from settings import get_settings


@pytest.fixture
def store(tmp_path) -> Iterator[SampleStore]:
    instance = SampleStore.from_url(f"sqlite:///{tmp_path / 'api.db'}")
    yield instance
    instance.dispose()


@pytest.fixture
def api_client(store: SampleStore, monkeypatch) -> Iterator[TestClient]:
    def build_test_store(database_url=None) -> SampleStore:
        return store

    build_test_store.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_store", build_test_store)
    monkeypatch.setattr("app.api.build_default_store", build_test_store)

    app = create_app()
    with TestClient(app) as client:
        yield client


def test_occupancy_history_is_newest_first(api_client: TestClient, store: SampleStore) -> None:
    base = datetime(2024, 6, 4, 9, 0, tzinfo=timezone.utc)
    store.append(base, 12)
    store.append(base + timedelta(minutes=10), 25)
    store.append(base + timedelta(minutes=5), 18)

    response = api_client.get("/occupancy")

    assert response.status_code == 200
    payload = response.json()
    assert [item["occupancy"] for item in payload] == [25, 18, 12]
    assert set(payload[0].keys()) == {"id", "timestamp", "occupancy"}
    parsed = datetime.fromisoformat(payload[0]["timestamp"].replace("Z", "+00:00"))
    assert parsed == base + timedelta(minutes=10)


def test_empty_history_returns_empty_list(api_client: TestClient) -> None:
    response = api_client.get("/occupancy")

    assert response.status_code == 200
    assert response.json() == []


def test_store_errors_return_service_unavailable(api_client: TestClient, store: SampleStore) -> None:
    from sqlalchemy import text

    with store.engine.begin() as conn:
        conn.execute(text("DROP TABLE occupancy_samples"))

    response = api_client.get("/occupancy")

    assert response.status_code == 503
    assert "Could not read occupancy samples" in response.json()["detail"]


def test_health_endpoints(api_client: TestClient) -> None:
    health = api_client.get("/health")
    root = api_client.get("/")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert root.status_code == 200
    assert "/occupancy" in root.json()["detail"]


def test_lifespan_disposes_store_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'lifespan.db'}")
    get_settings.cache_clear()
    build_default_store.cache_clear()
    try:
        app = create_app()
        with TestClient(app) as client:
            store_during = build_default_store()
            assert client.get("/occupancy").json() == []

        store_after = build_default_store()
        assert store_after is not store_during
        store_after.dispose()
    finally:
        build_default_store.cache_clear()
        get_settings.cache_clear()


def test_missing_connection_string_fails_startup(monkeypatch) -> None:
    for name in ("DATABASE_URL", "DB_CONNECTION_STRING", "AZURE_DB_CONNECTION"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    build_default_store.cache_clear()
    try:
        app = create_app()
        with pytest.raises(RuntimeError):
            with TestClient(app):
                pass
    finally:
        build_default_store.cache_clear()
        get_settings.cache_clear()
