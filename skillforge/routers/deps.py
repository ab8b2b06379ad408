from typing import Optional

from fastapi import Header

from skillforge.models.schemas import RecruiterModel, UserModel
from skillforge.services.db import recruiters_coll, users_coll
from skillforge.utils.exceptions import (
    AuthenticationError, AuthorizationError, ExceptionContext, ResourceNotFoundError
)
from skillforge.utils.logging_config import get_logger

logger = get_logger(__name__)


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Acting user, as resolved by the authentication gateway in front of the API"""
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("Not authorized, no user")
    return x_user_id.strip()


async def load_current_user(user_id: str) -> UserModel:
    with ExceptionContext("load_current_user", logger, user_id=user_id):
        doc = await users_coll.find_one({"user_id": user_id})
    if not doc:
        raise ResourceNotFoundError("User not found", resource="user", resource_id=user_id)
    return UserModel(**doc)


async def load_recruiter(user_id: str) -> RecruiterModel:
    with ExceptionContext("load_recruiter", logger, user_id=user_id):
        doc = await recruiters_coll.find_one({"user_id": user_id})
    if not doc:
        logger.warning(f"User {user_id} has no recruiter account")
        raise AuthorizationError("Recruiter account required", resource="recruiter")
    return RecruiterModel(**doc)
