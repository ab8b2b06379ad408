"""
Lease locks serializing capacity checks per hiring round.

Counting the applicants in a round and writing the moved application are two
operations; the lock document keyed on (job, round) makes them exclusive
between API workers. A lock is taken with a conditional upsert that only
matches an expired lease, so a live lease makes the upsert collide with the
unique index on lock_id.
"""
import asyncio
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from random import uniform

from dotenv import load_dotenv
from pymongo.errors import DuplicateKeyError

from skillforge.services.db import round_locks_coll
from skillforge.utils.exceptions import ConflictError
from skillforge.utils.logging_config import get_logger

load_dotenv()

ROUND_LOCK_TTL = int(os.getenv("ROUND_LOCK_TTL", "30"))  # seconds
ROUND_LOCK_ATTEMPTS = int(os.getenv("ROUND_LOCK_ATTEMPTS", "5"))
ROUND_LOCK_BACKOFF = float(os.getenv("ROUND_LOCK_BACKOFF", "0.05"))

logger = get_logger(__name__)


async def acquire_round_lock(job_id: str, round_index: int) -> str:
    """Take the lease for one round of a job, returning the owner token."""
    lock_id = f"{job_id}:{round_index}"
    token = str(uuid.uuid4())

    for attempt in range(ROUND_LOCK_ATTEMPTS):
        now = datetime.utcnow()
        try:
            await round_locks_coll.update_one(
                {"lock_id": lock_id, "expires_at": {"$lt": now}},
                {"$set": {"token": token, "expires_at": now + timedelta(seconds=ROUND_LOCK_TTL)}},
                upsert=True
            )
            logger.debug(f"Acquired round lock {lock_id} on attempt {attempt + 1}")
            return token
        except DuplicateKeyError:
            logger.debug(f"Round lock {lock_id} busy (attempt {attempt + 1}/{ROUND_LOCK_ATTEMPTS})")
            if attempt < ROUND_LOCK_ATTEMPTS - 1:
                await asyncio.sleep(ROUND_LOCK_BACKOFF * (2 ** attempt) + uniform(0, ROUND_LOCK_BACKOFF))

    logger.warning(f"Could not acquire round lock {lock_id} after {ROUND_LOCK_ATTEMPTS} attempts")
    raise ConflictError(
        f"Round {round_index} is being updated by another request, please retry",
        resource=lock_id
    )


async def release_round_lock(job_id: str, round_index: int, token: str) -> None:
    await round_locks_coll.delete_one({"lock_id": f"{job_id}:{round_index}", "token": token})


@asynccontextmanager
async def round_lock(job_id: str, round_index: int):
    token = await acquire_round_lock(job_id, round_index)
    try:
        yield token
    finally:
        await release_round_lock(job_id, round_index, token)
