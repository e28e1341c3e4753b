"""
tests/unit/test_task_service_units.py — task_service branches checked without
a database.

Sessions are MagicMock objects, stored tasks are SimpleNamespace rows and the
cache is a real TaskCache, so cache behaviour is observed directly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from taskflow.app.errors import ErrorCode
from taskflow.app.models.enums import Priority, Role
from taskflow.app.services import task_service
from taskflow.app.services.permissions import Principal
from taskflow.app.services.task_cache import TaskCache

OWNER = Principal(user_id=1, role=Role.REGULAR)
COLLABORATOR = Principal(user_id=2, role=Role.REGULAR)
STRANGER = Principal(user_id=3, role=Role.REGULAR)
ADMIN = Principal(user_id=9, role=Role.ADMIN)

DEADLINE = datetime(2030, 1, 1, tzinfo=timezone.utc)


def _stored_task(**overrides):
    values = dict(
        id=1,
        title="Write report",
        description="Quarterly numbers",
        deadline=DEADLINE,
        priority=Priority.HIGH,
        category="work",
        owner_id=1,
        collaborator_ids=[2],
        created_at=datetime(2020, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2020, 1, 1, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _session_with(task=None, existing_user_ids=()):
    session = MagicMock()
    session.get.return_value = task
    session.execute.return_value.scalars.return_value.all.return_value = list(existing_user_ids)
    return session


@pytest.fixture
def cache():
    return TaskCache(ttl_seconds=600)


# ═══════════════════════════════════════════════════════════════════════════
# create_task
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateTask:

    def _data(self, **overrides):
        data = {
            "title": "  Write report ",
            "description": "Quarterly numbers",
            "deadline": DEADLINE,
            "priority": "high",
            "category": "work",
            "collaborators": [],
        }
        data.update(overrides)
        return data

    def test_owner_is_the_caller(self):
        session = _session_with()
        result = task_service.create_task(principal=OWNER, data=self._data(), session=session)

        assert result.status == 201
        assert result.data["ownerId"] == 1
        assert result.data["title"] == "Write report"
        assert result.data["priority"] == "high"
        session.add.assert_called_once()
        session.flush.assert_called_once()

    def test_collaborators_deduplicated_in_order(self):
        session = _session_with(existing_user_ids=[2, 5])
        result = task_service.create_task(
            principal=OWNER,
            data=self._data(collaborators=[5, 2, 5]),
            session=session,
        )
        assert result.data["collaborators"] == [5, 2]

    def test_unknown_collaborator_rejected(self):
        session = _session_with(existing_user_ids=[2])
        result = task_service.create_task(
            principal=OWNER,
            data=self._data(collaborators=[2, 77]),
            session=session,
        )
        assert result.status == 400
        assert result.code == ErrorCode.UNKNOWN_COLLABORATOR
        assert result.field == "collaborators"
        session.add.assert_not_called()

    def test_blank_title_is_missing_field(self):
        result = task_service.create_task(
            principal=OWNER,
            data=self._data(title="   "),
            session=_session_with(),
        )
        assert result.status == 400
        assert result.code == ErrorCode.MISSING_FIELD
        assert result.field == "title"

    def test_priority_defaults_to_medium(self):
        data = self._data()
        del data["priority"]
        result = task_service.create_task(principal=OWNER, data=data, session=_session_with())
        assert result.data["priority"] == "medium"


# ═══════════════════════════════════════════════════════════════════════════
# get_task
# ═══════════════════════════════════════════════════════════════════════════

class TestGetTask:

    def test_miss_loads_and_caches(self, cache):
        session = _session_with(task=_stored_task())

        result = task_service.get_task(task_id=1, session=session, cache=cache)

        assert result.status == 200
        assert result.data["id"] == 1
        assert result.data["collaborators"] == [2]
        assert cache.get(1) == result.data

    def test_hit_does_not_touch_persistence(self, cache):
        cache.put(1, {"id": 1, "title": "cached"})
        session = MagicMock()

        result = task_service.get_task(task_id=1, session=session, cache=cache)

        assert result.data == {"id": 1, "title": "cached"}
        session.get.assert_not_called()

    def test_missing_task_is_404_and_not_cached(self, cache):
        result = task_service.get_task(task_id=404, session=_session_with(task=None), cache=cache)
        assert result.status == 404
        assert result.code == ErrorCode.TASK_NOT_FOUND
        assert len(cache) == 0


# ═══════════════════════════════════════════════════════════════════════════
# update_task
# ═══════════════════════════════════════════════════════════════════════════

class TestUpdateTask:

    def test_collaborator_can_update_and_cache_is_invalidated(self, cache):
        task = _stored_task()
        cache.put(1, {"id": 1, "title": "Write report"})

        result = task_service.update_task(
            task_id=1,
            principal=COLLABORATOR,
            data={"title": "Write final report"},
            session=_session_with(task=task),
            cache=cache,
        )

        assert result.status == 200
        assert task.title == "Write final report"
        assert result.data["title"] == "Write final report"
        assert cache.get(1) is None

    def test_updated_at_moves_forward(self, cache):
        task = _stored_task()
        before = task.updated_at
        task_service.update_task(
            task_id=1, principal=OWNER, data={"category": "home"},
            session=_session_with(task=task), cache=cache,
        )
        assert task.updated_at > before

    def test_stranger_is_forbidden_and_cache_kept(self, cache):
        cache.put(1, {"id": 1})
        task = _stored_task()

        result = task_service.update_task(
            task_id=1,
            principal=STRANGER,
            data={"title": "hijack"},
            session=_session_with(task=task),
            cache=cache,
        )

        assert result.status == 403
        assert result.code == ErrorCode.FORBIDDEN
        assert task.title == "Write report"
        assert cache.get(1) == {"id": 1}

    def test_admin_without_ownership_cannot_update(self, cache):
        result = task_service.update_task(
            task_id=1, principal=ADMIN, data={"title": "x"},
            session=_session_with(task=_stored_task()), cache=cache,
        )
        assert result.status == 403

    def test_missing_task_is_404_before_permission_check(self, cache):
        result = task_service.update_task(
            task_id=1, principal=STRANGER, data={"title": "x"},
            session=_session_with(task=None), cache=cache,
        )
        assert result.status == 404

    def test_blanking_required_text_is_rejected(self, cache):
        result = task_service.update_task(
            task_id=1, principal=OWNER, data={"description": "  "},
            session=_session_with(task=_stored_task()), cache=cache,
        )
        assert result.status == 400
        assert result.code == ErrorCode.MISSING_FIELD
        assert result.field == "description"


# ═══════════════════════════════════════════════════════════════════════════
# delete_task
# ═══════════════════════════════════════════════════════════════════════════

class TestDeleteTask:

    def test_collaborator_cannot_delete(self, cache):
        session = _session_with(task=_stored_task())
        result = task_service.delete_task(task_id=1, principal=COLLABORATOR, session=session, cache=cache)
        assert result.status == 403
        session.delete.assert_not_called()

    @pytest.mark.parametrize("principal", [OWNER, ADMIN])
    def test_owner_or_admin_deletes_and_invalidates(self, cache, principal):
        task = _stored_task()
        session = _session_with(task=task)
        cache.put(1, {"id": 1})

        result = task_service.delete_task(task_id=1, principal=principal, session=session, cache=cache)

        assert result.status == 200
        session.delete.assert_called_once_with(task)
        assert cache.get(1) is None

    def test_missing_task_is_404(self, cache):
        result = task_service.delete_task(
            task_id=5, principal=ADMIN, session=_session_with(task=None), cache=cache,
        )
        assert result.status == 404
        assert result.code == ErrorCode.TASK_NOT_FOUND


# ═══════════════════════════════════════════════════════════════════════════
# list_tasks
# ═══════════════════════════════════════════════════════════════════════════

class TestListTasks:

    def _session(self, rows, total):
        rows_result = MagicMock()
        rows_result.scalars.return_value.all.return_value = rows
        count_result = MagicMock()
        count_result.scalar_one.return_value = total
        session = MagicMock()
        session.execute.side_effect = [rows_result, count_result]
        return session

    def test_pagination_metadata(self):
        session = self._session([_stored_task()], total=11)

        result = task_service.list_tasks(principal=OWNER, session=session, page=2, limit=10)

        assert result.status == 200
        assert len(result.data) == 1
        assert result.meta["pagination"] == {
            "page": 2,
            "limit": 10,
            "totalTasks": 11,
            "totalPages": 2,
        }

    def test_empty_listing_has_zero_pages(self):
        result = task_service.list_tasks(principal=ADMIN, session=self._session([], total=0))
        assert result.data == []
        assert result.meta["pagination"]["totalPages"] == 0

    def test_unknown_sort_column_rejected(self):
        result = task_service.list_tasks(principal=OWNER, session=MagicMock(), sort_by="password_hash")
        assert result.status == 400
        assert result.field == "sortBy"

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, 0)])
    def test_non_positive_paging_rejected(self, page, limit):
        result = task_service.list_tasks(principal=OWNER, session=MagicMock(), page=page, limit=limit)
        assert result.status == 400
        assert result.code == ErrorCode.INVALID_FIELD
