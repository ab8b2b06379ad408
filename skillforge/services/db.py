import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING
import os
from dotenv import load_dotenv

from skillforge.utils.exceptions import DatabaseError
from skillforge.utils.logging_config import get_logger

logger = get_logger(__name__)

load_dotenv()

MONGO_DETAILS = os.getenv("MONGO_DETAILS", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "skillforge_db")

logger.info(f"Initializing MongoDB connection to database: {DB_NAME}")

try:
    client = motor.motor_asyncio.AsyncIOMotorClient(MONGO_DETAILS)
    db = client[DB_NAME]
    logger.info("MongoDB client initialized successfully")
except Exception as e:
    logger.error(f"Failed to initialize MongoDB client: {e}")
    raise

# Collections
users_coll = db["users"]
recruiters_coll = db["recruiters"]
jobs_coll = db["jobs"]
applications_coll = db["applications"]
round_locks_coll = db["round_locks"]


async def _create_index(coll, keys, name: str, required: bool = False, **kwargs):
    """Create one index; a failure on a required index aborts initialization."""
    try:
        await coll.create_index(keys, **kwargs)
        logger.debug(f"Created index {name}")
    except Exception as e:
        if "already exists" in str(e).lower():
            logger.debug(f"Index {name} already exists")
        elif required:
            logger.error(f"Could not create required index {name}: {e}")
            raise DatabaseError(
                f"Could not create required index {name}",
                operation="create_index",
                collection=coll.name,
                cause=e
            ) from e
        else:
            logger.warning(f"Could not create index {name}: {e}")


async def init_indexes():
    """Index initialization for collections."""
    logger.info("Starting database index initialization")

    await _create_index(users_coll, [("user_id", ASCENDING)], "users.user_id", unique=True)
    await _create_index(recruiters_coll, [("recruiter_id", ASCENDING)], "recruiters.recruiter_id", unique=True)
    await _create_index(recruiters_coll, [("user_id", ASCENDING)], "recruiters.user_id", unique=True)
    await _create_index(jobs_coll, [("job_id", ASCENDING)], "jobs.job_id", unique=True)
    await _create_index(jobs_coll, [("recruiter_id", ASCENDING)], "jobs.recruiter_id")
    await _create_index(jobs_coll, [("status", ASCENDING), ("posted_at", DESCENDING)], "jobs.(status, posted_at)")

    await _create_index(applications_coll, [("application_id", ASCENDING)], "applications.application_id", unique=True)
    # One application per applicant and job
    await _create_index(
        applications_coll,
        [("job_id", ASCENDING), ("applicant_id", ASCENDING)],
        "applications.(job_id, applicant_id)",
        unique=True
    )
    # Round occupancy counts
    await _create_index(
        applications_coll,
        [("job_id", ASCENDING), ("current_round.round_index", ASCENDING), ("status", ASCENDING)],
        "applications.(job_id, current_round.round_index, status)"
    )
    await _create_index(applications_coll, [("match_score", DESCENDING)], "applications.match_score")

    # Round capacity locking relies on this index rejecting a second holder
    await _create_index(
        round_locks_coll, [("lock_id", ASCENDING)], "round_locks.lock_id", required=True, unique=True
    )

    logger.info("Database index initialization completed")


def to_dict(doc):
    if not doc:
        return None
    doc.pop("_id", None)
    return doc
