import pytest
from unittest.mock import AsyncMock, patch
from pymongo.errors import DuplicateKeyError

from skillforge.services import round_lock as round_lock_module
from skillforge.services.round_lock import acquire_round_lock, round_lock
from skillforge.utils.exceptions import ConflictError


@pytest.fixture
def locks_coll():
    with patch('skillforge.services.round_lock.round_locks_coll') as coll, \
         patch.object(round_lock_module, "ROUND_LOCK_BACKOFF", 0):
        coll.update_one = AsyncMock()
        coll.delete_one = AsyncMock()
        yield coll


class TestRoundLock:

    @pytest.mark.asyncio
    async def test_acquire_upserts_expired_lease(self, locks_coll):
        token = await acquire_round_lock("job-1", 2)

        query, update = locks_coll.update_one.call_args[0]
        assert query["lock_id"] == "job-1:2"
        assert "$lt" in query["expires_at"]
        assert update["$set"]["token"] == token
        assert locks_coll.update_one.call_args.kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_busy_lock_is_retried(self, locks_coll):
        locks_coll.update_one.side_effect = [DuplicateKeyError("held"), DuplicateKeyError("held"), None]

        await acquire_round_lock("job-1", 1)

        assert locks_coll.update_one.await_count == 3

    @pytest.mark.asyncio
    async def test_contention_becomes_conflict(self, locks_coll):
        locks_coll.update_one.side_effect = DuplicateKeyError("held")

        with pytest.raises(ConflictError) as exc_info:
            await acquire_round_lock("job-1", 1)

        assert locks_coll.update_one.await_count == round_lock_module.ROUND_LOCK_ATTEMPTS
        assert exc_info.value.details["resource"] == "job-1:1"

    @pytest.mark.asyncio
    async def test_context_releases_own_token(self, locks_coll):
        with pytest.raises(RuntimeError):
            async with round_lock("job-1", 0) as token:
                raise RuntimeError("boom")

        locks_coll.delete_one.assert_awaited_once_with({"lock_id": "job-1:0", "token": token})
