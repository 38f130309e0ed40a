"""Integration tests for block rules and block attempts.

Tests cover:
- Rule distribution: global ∪ device-scoped, newest first
- Block creation from video/channel links and keywords
- Placeholder metadata on created blocks
- Deletion and its 404
- Attempt logging, stats, and the recent-attempts listing
- /blocks/attempts/* never captured by /blocks/{device_id}
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from tests.factories import create_test_attempt, create_test_block, create_test_device
from tests.helpers import create_block, key_headers, register
from ytmonitor.db.models import Block, BlockAttempt


class TestBlockDistribution:
    def test_union_of_global_and_device_blocks(self, client, db_session):
        """getBlocks(X) returns global + X's blocks; getBlocks(Y) only the global one."""
        key_x = register(client, "dev-x")
        key_y = register(client, "dev-y")
        global_block = create_test_block(db_session, "global-vid")
        scoped_block = create_test_block(db_session, "x-only-vid", device_id="dev-x")

        response_x = client.get("/api/v1/blocks/dev-x", headers=key_headers(key_x))
        response_y = client.get("/api/v1/blocks/dev-y", headers=key_headers(key_y))

        assert response_x.status_code == 200
        data_x = response_x.json()
        assert data_x["device_id"] == "dev-x"
        assert data_x["count"] == 2
        assert {b["id"] for b in data_x["blocks"]} == {global_block.id, scoped_block.id}

        data_y = response_y.json()
        assert data_y["count"] == 1
        assert [b["id"] for b in data_y["blocks"]] == [global_block.id]

    def test_newest_first(self, client, db_session):
        api_key = register(client, "dev-1")
        now = datetime.now(UTC)
        create_test_block(db_session, "oldest", created_at=now - timedelta(days=2))
        create_test_block(db_session, "newest", created_at=now)
        create_test_block(
            db_session, "middle", device_id="dev-1", created_at=now - timedelta(days=1)
        )

        response = client.get("/api/v1/blocks/dev-1", headers=key_headers(api_key))

        assert [b["youtube_id"] for b in response.json()["blocks"]] == [
            "newest",
            "middle",
            "oldest",
        ]

    def test_no_blocks(self, client):
        api_key = register(client, "dev-1")

        response = client.get("/api/v1/blocks/dev-1", headers=key_headers(api_key))

        assert response.json() == {"device_id": "dev-1", "blocks": [], "count": 0}


class TestCreateBlock:
    def test_video_block_from_watch_url(self, client, db_session):
        block = create_block(
            client,
            url="https://www.youtube.com/watch?v=abc123",
            custom_message="Ask a parent first",
        )

        assert block["type"] == "video"
        assert block["youtube_id"] == "abc123"
        assert block["device_id"] is None
        assert block["custom_message"] == "Ask a parent first"
        assert block["title"] == "Video abc123"
        assert block["channel_name"] == "Unknown Channel"
        assert block["thumbnail_url"] == "https://i.ytimg.com/vi/abc123/mqdefault.jpg"
        assert db_session.get(Block, block["id"]) is not None

    def test_channel_block_from_handle(self, client):
        block = create_block(client, url="https://www.youtube.com/@SomeCreator")

        assert block["type"] == "channel"
        assert block["youtube_id"] == "SomeCreator"
        assert block["title"] == "Channel SomeCreator"

    def test_keyword_block(self, client):
        block = create_block(client, keyword="  prank  ")

        assert block["type"] == "keyword"
        assert block["youtube_id"] == "prank"

    def test_device_scoped_block(self, client):
        register(client, "dev-1")

        block = create_block(client, url="https://youtu.be/abc123", device_id="dev-1")

        assert block["device_id"] == "dev-1"

    def test_unknown_device_rejected(self, client, db_session):
        response = client.post(
            "/api/v1/blocks",
            json={"url": "https://youtu.be/abc123", "device_id": "ghost"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_DEVICE_NOT_FOUND"
        assert db_session.scalars(select(Block)).all() == []

    @pytest.mark.parametrize(
        "url",
        ["https://example.com/watch?v=abc", "https://www.youtube.com/feed/trending", "nonsense"],
    )
    def test_invalid_url_rejected(self, client, url):
        response = client.post("/api/v1/blocks", json={"url": url})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_URL"

    @pytest.mark.parametrize(
        "body",
        [{}, {"url": "https://youtu.be/abc", "keyword": "x"}, {"custom_message": "hi"}],
    )
    def test_exactly_one_target_required(self, client, body):
        response = client.post("/api/v1/blocks", json=body)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_list_all_blocks(self, client, db_session):
        register(client, "dev-1")
        create_test_block(db_session, "a")
        create_test_block(db_session, "b", device_id="dev-1")

        response = client.get("/api/v1/blocks")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 2
        assert {b["youtube_id"] for b in body["blocks"]} == {"a", "b"}


class TestDeleteBlock:
    def test_delete(self, client, db_session):
        block = create_test_block(db_session, "abc123")

        response = client.delete(f"/api/v1/blocks/{block.id}")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        db_session.expire_all()
        assert db_session.get(Block, block.id) is None

    def test_delete_unknown(self, client):
        response = client.delete("/api/v1/blocks/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_BLOCK_NOT_FOUND"

    def test_deleted_block_no_longer_distributed(self, client, db_session):
        api_key = register(client, "dev-1")
        block = create_test_block(db_session, "abc123")

        client.delete(f"/api/v1/blocks/{block.id}")
        response = client.get("/api/v1/blocks/dev-1", headers=key_headers(api_key))

        assert response.json()["count"] == 0


class TestBlockAttempts:
    def test_log_attempt(self, client, db_session):
        api_key = register(client, "dev-1")

        response = client.post(
            "/api/v1/blocks/attempts",
            json={
                "device_id": "dev-1",
                "youtube_id": "abc123",
                "type": "video",
                "video_title": "Blocked video",
                "channel_name": "Some channel",
            },
            headers=key_headers(api_key),
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        attempt = db_session.scalars(select(BlockAttempt)).one()
        assert attempt.device_id == "dev-1"
        assert attempt.youtube_id == "abc123"
        assert attempt.video_title == "Blocked video"

    def test_missing_metadata_defaults_to_unknown(self, client, db_session):
        api_key = register(client, "dev-1")

        client.post(
            "/api/v1/blocks/attempts",
            json={"device_id": "dev-1", "youtube_id": "UCxyz", "type": "channel"},
            headers=key_headers(api_key),
        )

        attempt = db_session.scalars(select(BlockAttempt)).one()
        assert attempt.type == "channel"
        assert attempt.video_title == "Unknown"
        assert attempt.channel_name == "Unknown"

    def test_attempts_are_never_deduplicated(self, client, db_session):
        api_key = register(client, "dev-1")
        body = {"device_id": "dev-1", "youtube_id": "abc123", "type": "video"}

        for _ in range(3):
            client.post("/api/v1/blocks/attempts", json=body, headers=key_headers(api_key))

        assert len(db_session.scalars(select(BlockAttempt)).all()) == 3

    def test_requires_key(self, client):
        register(client, "dev-1")

        response = client.post(
            "/api/v1/blocks/attempts",
            json={"device_id": "dev-1", "youtube_id": "abc123", "type": "video"},
        )

        assert response.status_code == 401

    def test_stats(self, client, db_session):
        create_test_device(db_session, "dev-1")
        now = datetime.now(UTC)
        create_test_attempt(db_session, "dev-1", attempted_at=now)
        create_test_attempt(db_session, "dev-1", attempted_at=now)
        create_test_attempt(db_session, "dev-1", attempted_at=now - timedelta(days=2))

        response = client.get("/api/v1/blocks/attempts/stats")

        assert response.status_code == 200
        assert response.json() == {"today": 2, "total": 3}

    def test_recent_includes_device_name(self, client, db_session):
        create_test_device(db_session, "dev-1", device_name="Kid laptop")
        now = datetime.now(UTC)
        create_test_attempt(db_session, "dev-1", "older", attempted_at=now - timedelta(hours=1))
        create_test_attempt(db_session, "dev-1", "newer", attempted_at=now)

        response = client.get("/api/v1/blocks/attempts/recent", params={"limit": 1})

        assert response.status_code == 200
        attempts = response.json()
        assert len(attempts) == 1
        assert attempts[0]["youtube_id"] == "newer"
        assert attempts[0]["device_name"] == "Kid laptop"
