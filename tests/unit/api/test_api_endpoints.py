import asyncio

import pytest
from fastapi.testclient import TestClient
from livesync.domain.streams import Streams
from livesync.main import app
from livesync.realtime.stream_store import StreamStore


@pytest.fixture
def store():
    # lifespan does not run without `with TestClient(...)`, so wire state by hand
    s = StreamStore(capacity=100)
    for stream in Streams.all_streams():
        s.register(stream)
    app.state.store = s
    app.state.ready_event = asyncio.Event()
    yield s


@pytest.fixture
def client(store):
    return TestClient(app)


def test_current_block_null_before_first_commit(client):
    resp = client.get("/api/current-block")
    assert resp.status_code == 200
    assert resp.json() is None


def test_responses_are_never_cached(client):
    resp = client.get("/api/market-data")
    assert resp.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert resp.headers["pragma"] == "no-cache"
    assert resp.headers["expires"] == "0"


def test_current_block_and_market(client, store, make_block, make_market):
    store.commit(Streams.BLOCK_INFO, make_block(840000, at=1))
    store.commit(Streams.MARKET_DATA, make_market(42000.0, at=1))

    block = client.get("/api/current-block").json()
    assert block["block_height"] == 840000
    assert block["stream"] == Streams.BLOCK_INFO
    market = client.get("/api/market-data").json()
    assert market["market_price"] == 42000.0


def test_recent_transactions(client, store, make_transactions):
    assert client.get("/api/recent-transactions").json() == []
    store.commit(
        Streams.RECENT_TRANSACTIONS, make_transactions(["a", "b", "c"], at=10)
    )
    body = client.get("/api/recent-transactions", params={"limit": 2}).json()
    assert [tx["tx_hash"] for tx in body] == ["a", "b"]
    assert client.get("/api/recent-transactions", params={"limit": 0}).status_code == 422


def test_historical_data_oldest_first(client, store, make_block, make_market):
    for i in range(3):
        store.commit(Streams.BLOCK_INFO, make_block(100 + i, at=i))
        store.commit(Streams.MARKET_DATA, make_market(10.0 + i, at=i))
    body = client.get("/api/historical-data").json()
    assert [b["block_height"] for b in body["blocks"]] == [100, 101, 102]
    assert [p["market_price"] for p in body["prices"]] == [10.0, 11.0, 12.0]


def test_snapshots_bundle(client, store, make_block):
    store.commit(Streams.BLOCK_INFO, make_block(5, at=1))
    body = client.get("/api/snapshots").json()
    assert set(body["snapshots"]) == set(Streams.all_streams())
    assert body["snapshots"][Streams.BLOCK_INFO]["block_height"] == 5
    assert body["snapshots"][Streams.MARKET_DATA] is None

    subset = client.get("/api/snapshots", params={"streams": "market_data"}).json()
    assert list(subset["snapshots"]) == [Streams.MARKET_DATA]


def test_unknown_stream_is_404(client):
    for path, params in [
        ("/api/streams/mempool", None),
        ("/api/streams/mempool/history", None),
        ("/api/snapshots", {"streams": "mempool"}),
    ]:
        resp = client.get(path, params=params)
        assert resp.status_code == 404
        assert resp.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert resp.headers["pragma"] == "no-cache"
        assert resp.headers["expires"] == "0"


def test_rejected_query_is_not_cached(client):
    resp = client.get("/api/recent-transactions", params={"limit": 0})
    assert resp.status_code == 422
    assert resp.headers["cache-control"] == "no-cache, no-store, must-revalidate"


def test_cross_origin_displays_may_poll(client):
    resp = client.get("/api/current-block", headers={"Origin": "http://display.example"})
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"

    preflight = client.options(
        "/api/snapshots",
        headers={
            "Origin": "http://display.example",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert preflight.status_code == 200
    assert "GET" in preflight.headers["access-control-allow-methods"]


def test_stream_snapshot_and_history(client, store, make_market):
    resp = client.get(f"/api/streams/{Streams.MARKET_DATA}").json()
    assert resp == {"stream": Streams.MARKET_DATA, "available": False, "snapshot": None}

    for i in range(4):
        store.commit(Streams.MARKET_DATA, make_market(1.0 + i, at=i))
    resp = client.get(f"/api/streams/{Streams.MARKET_DATA}").json()
    assert resp["available"] is True
    assert resp["snapshot"]["market_price"] == 4.0

    history = client.get(
        f"/api/streams/{Streams.MARKET_DATA}/history", params={"limit": 2}
    ).json()
    assert [p["market_price"] for p in history["points"]] == [3.0, 4.0]


def test_health_reports_stream_state(client, store, make_block):
    store.commit(Streams.BLOCK_INFO, make_block(1, at=1))
    body = client.get("/healthz").json()
    assert body["status"] == "ok"
    assert body["streams"][Streams.BLOCK_INFO]["initialized"] is True
    assert body["streams"][Streams.BLOCK_INFO]["history_points"] == 1
    assert body["streams"][Streams.MARKET_DATA]["seconds_since_commit"] is None


def test_readyz_follows_first_commit(client):
    assert client.get("/readyz").status_code == 503
    app.state.ready_event.set()
    assert client.get("/readyz").status_code == 200


def test_metrics_endpoint(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "livesync_cycle_duration_seconds" in resp.text
