from repositories import sql
from repositories.base import EntityStore
from services.clock import utcnow
from services.errors import NotFoundError, require_ids
from services.teams import cascade_deactivate
from typing import Callable, Dict, List, Optional
from datetime import datetime
import logging
import random


logger = logging.getLogger(__name__)


async def get_review(user_id: str, *, store: Optional[EntityStore] = None) -> List[Dict]:
    """
    GET /users/getReview
    Get PRs where the user is a reviewer, newest first
    Returns list of PR short objects (empty for an unknown user)
    """
    require_ids(user_id=user_id)
    store = store or sql.default_store

    async with store.begin() as uow:
        prs = await uow.pull_requests_reviewed_by(user_id)

    return [
        {
            "pull_request_id": pr.pull_request_id,
            "pull_request_name": pr.name,
            "author_id": pr.author_id,
            "status": pr.status
        }
        for pr in prs
    ]


async def set_is_active(
    user_id: str,
    is_active: bool,
    *,
    store: Optional[EntityStore] = None,
    rng: Optional[random.Random] = None,
    clock: Callable[[], datetime] = utcnow
) -> Dict:
    """
    POST /users/setIsActive
    Update user's is_active flag. Deactivating an active user also hands
    their open reviews to teammates of each PR's author, in the same transaction.
    Returns user object with team_name
    """
    require_ids(user_id=user_id)
    store = store or sql.default_store

    async with store.begin() as uow:
        user = await uow.get_user(user_id)
        if not user:
            raise NotFoundError("user not found")

        now = clock()
        if not is_active and user.is_active:
            reassignments = await cascade_deactivate(uow, [user_id], rng, now)
            logger.info("deactivated %s, %d reviewer slots repaired", user_id, len(reassignments))
        else:
            await uow.set_users_active([user_id], is_active, now)

        user = await uow.get_user(user_id)
        await uow.commit()

    return {
        "user_id": user.user_id,
        "username": user.username,
        "team_name": user.team_name,
        "is_active": user.is_active
    }
