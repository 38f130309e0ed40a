"""Tests for sessions and the write-transaction boundary.

Tests cover:
- transaction() commits on success and rolls back on error
- A storage OperationalError becomes StorageUnavailableError (503)
- Request sessions are bound to the app's own engine
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from tests.factories import create_test_device
from ytmonitor.app import create_app
from ytmonitor.db.models import Block
from ytmonitor.db.session import transaction
from ytmonitor.errors import ApiErrorCode, StorageUnavailableError


def count_blocks(session) -> int:
    return session.scalar(select(func.count()).select_from(Block))


class TestTransaction:
    def test_commits_on_success(self, db_session, session_factory):
        with transaction(db_session, "create_block"):
            db_session.add(Block(type="video", youtube_id="abc123", title="T"))

        with session_factory() as other:
            assert count_blocks(other) == 1

    def test_rolls_back_on_error(self, db_session):
        with pytest.raises(ValueError):
            with transaction(db_session, "create_block"):
                db_session.add(Block(type="video", youtube_id="abc123", title="T"))
                db_session.flush()
                raise ValueError("boom")

        assert count_blocks(db_session) == 0

    def test_operational_error_is_storage_unavailable(self, db_session):
        with pytest.raises(StorageUnavailableError) as exc_info:
            with transaction(db_session, "submit_history"):
                raise OperationalError("INSERT ...", {}, Exception("database is locked"))

        assert exc_info.value.code == ApiErrorCode.E_STORAGE_UNAVAILABLE
        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, OperationalError)


class TestRequestSessions:
    def test_requests_use_the_app_engine(self, client, db_session):
        create_test_device(db_session, device_id="dev-a")

        response = client.get("/api/v1/devices")

        assert response.status_code == 200
        assert [d["device_id"] for d in response.json()] == ["dev-a"]

    def test_app_without_engine_has_no_bound_factory(self):
        assert create_app().state.session_factory is None
