from repositories import sql
from repositories.base import EntityStore
from services.errors import InvalidInputError
from typing import Dict, Optional
import config


async def get_stats(top: Optional[int] = None, *, store: Optional[EntityStore] = None) -> Dict:
    """
    GET /stats
    Entity counts plus the ``top`` most assigned reviewers (capped at STATS_TOP_LIMIT)
    """
    limit = 0
    if top is not None:
        if top <= 0:
            raise InvalidInputError("top must be a positive integer")
        limit = min(top, config.STATS_TOP_LIMIT)

    store = store or sql.default_store
    async with store.begin() as uow:
        return await uow.stats(limit)
