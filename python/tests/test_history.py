"""Integration tests for watch-history ingestion.

Tests cover:
- Successful batch insert with count
- watched_at default (receipt time) and client-supplied values
- Array order preserved within a batch
- Batch atomicity: one invalid row stores nothing and is itemized
- Batch size bounds
- Management listing
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select

from tests.factories import create_test_device, create_test_history_entry
from tests.helpers import key_headers, register
from ytmonitor.db.models import WatchHistoryEntry, as_utc


def _count(db_session) -> int:
    return db_session.scalar(select(func.count()).select_from(WatchHistoryEntry))


class TestSubmitHistory:
    @pytest.fixture
    def api_key(self, client):
        return register(client, "dev-1")

    def test_single_video(self, client, db_session, api_key):
        response = client.post(
            "/api/v1/watch-history",
            json={"videos": [{"video_id": "abc123"}]},
            headers=key_headers(api_key),
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 1}

        entry = db_session.scalars(select(WatchHistoryEntry)).one()
        assert entry.device_id == "dev-1"
        assert entry.video_id == "abc123"
        assert entry.title is None

    def test_full_video_record(self, client, db_session, api_key):
        video = {
            "video_id": "abc123",
            "title": "How to bake bread",
            "channel_name": "Baker",
            "channel_id": "UCbaker",
            "thumbnail_url": "https://i.ytimg.com/vi/abc123/mqdefault.jpg",
            "video_url": "https://www.youtube.com/watch?v=abc123",
            "watched_at": "2026-01-02T03:04:05Z",
            "duration": 312,
        }

        response = client.post(
            "/api/v1/watch-history", json={"videos": [video]}, headers=key_headers(api_key)
        )

        assert response.status_code == 200
        entry = db_session.scalars(select(WatchHistoryEntry)).one()
        assert entry.channel_id == "UCbaker"
        assert entry.duration == 312
        assert as_utc(entry.watched_at) == datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)

    def test_watched_at_defaults_to_receipt_time(self, client, db_session, api_key):
        before = datetime.now(UTC)
        client.post(
            "/api/v1/watch-history",
            json={"videos": [{"video_id": "abc123"}]},
            headers=key_headers(api_key),
        )
        after = datetime.now(UTC)

        entry = db_session.scalars(select(WatchHistoryEntry)).one()
        assert before <= as_utc(entry.watched_at) <= after

    def test_epoch_millis_watched_at(self, client, db_session, api_key):
        millis = int(datetime(2026, 5, 1, tzinfo=UTC).timestamp() * 1000)

        response = client.post(
            "/api/v1/watch-history",
            json={"videos": [{"video_id": "abc123", "watched_at": millis}]},
            headers=key_headers(api_key),
        )

        assert response.status_code == 200
        entry = db_session.scalars(select(WatchHistoryEntry)).one()
        assert as_utc(entry.watched_at) == datetime(2026, 5, 1, tzinfo=UTC)

    def test_batch_preserves_array_order(self, client, db_session, api_key):
        videos = [{"video_id": f"vid{i}"} for i in range(5)]

        response = client.post(
            "/api/v1/watch-history", json={"videos": videos}, headers=key_headers(api_key)
        )

        assert response.json()["count"] == 5
        stored = db_session.scalars(
            select(WatchHistoryEntry.video_id).order_by(WatchHistoryEntry.id)
        ).all()
        assert stored == [f"vid{i}" for i in range(5)]

    def test_invalid_row_rejects_whole_batch(self, client, db_session, api_key):
        """5 valid + 1 invalid: nothing stored, the invalid row itemized by index."""
        videos = [{"video_id": f"vid{i}"} for i in range(5)] + [{"title": "no id"}]

        response = client.post(
            "/api/v1/watch-history", json={"videos": videos}, headers=key_headers(api_key)
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "E_HISTORY_BATCH_INVALID"
        assert error["details"]["accepted"] == 0
        assert [f["index"] for f in error["details"]["failed"]] == [5]
        assert error["details"]["failed"][0]["errors"][0]["field"] == "video_id"
        assert _count(db_session) == 0

    def test_multiple_invalid_rows_are_all_itemized(self, client, db_session, api_key):
        videos = [
            {"video_id": ""},
            {"video_id": "ok"},
            {"video_id": "neg", "duration": -1},
            "not an object",
        ]

        response = client.post(
            "/api/v1/watch-history", json={"videos": videos}, headers=key_headers(api_key)
        )

        assert response.status_code == 400
        failed = response.json()["error"]["details"]["failed"]
        assert [f["index"] for f in failed] == [0, 2, 3]
        assert _count(db_session) == 0

    def test_empty_batch_rejected(self, client, api_key):
        response = client.post(
            "/api/v1/watch-history", json={"videos": []}, headers=key_headers(api_key)
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_oversized_batch_rejected(self, client, db_session, api_key):
        videos = [{"video_id": f"vid{i}"} for i in range(101)]

        response = client.post(
            "/api/v1/watch-history", json={"videos": videos}, headers=key_headers(api_key)
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"
        assert _count(db_session) == 0

    def test_max_batch_accepted(self, client, api_key):
        videos = [{"video_id": f"vid{i}"} for i in range(100)]

        response = client.post(
            "/api/v1/watch-history", json={"videos": videos}, headers=key_headers(api_key)
        )

        assert response.status_code == 200
        assert response.json()["count"] == 100

    def test_requires_key(self, client):
        response = client.post("/api/v1/watch-history", json={"videos": [{"video_id": "a"}]})

        assert response.status_code == 401


class TestListHistory:
    def test_newest_first(self, client, db_session):
        device = create_test_device(db_session, "dev-1")
        now = datetime.now(UTC)
        create_test_history_entry(db_session, device.device_id, "old", now - timedelta(hours=2))
        create_test_history_entry(db_session, device.device_id, "new", now)
        create_test_history_entry(db_session, device.device_id, "mid", now - timedelta(hours=1))

        response = client.get("/api/v1/watch-history")

        assert response.status_code == 200
        assert [e["video_id"] for e in response.json()] == ["new", "mid", "old"]

    def test_filter_by_device_and_limit(self, client, db_session):
        create_test_device(db_session, "dev-1")
        create_test_device(db_session, "dev-2")
        for i in range(3):
            create_test_history_entry(db_session, "dev-1", f"a{i}")
        create_test_history_entry(db_session, "dev-2", "b0")

        response = client.get("/api/v1/watch-history", params={"device_id": "dev-1", "limit": 2})

        assert response.status_code == 200
        entries = response.json()
        assert len(entries) == 2
        assert {e["device_id"] for e in entries} == {"dev-1"}

    def test_limit_out_of_range_rejected(self, client):
        response = client.get("/api/v1/watch-history", params={"limit": 501})

        assert response.status_code == 400
