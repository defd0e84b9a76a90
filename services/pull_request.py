from models.records import OPEN, PullRequestRecord
from repositories import sql
from repositories.base import EntityStore
from services.candidates import find_candidates, creation_exclusions, reassign_exclusions
from services.clock import utcnow
from services.errors import AlreadyExistsError, ConflictError, NotFoundError, require_ids
from services.tiebreak import pick_many, pick_one
from typing import Callable, Dict, List, Optional
from datetime import datetime
import logging
import random


logger = logging.getLogger(__name__)

MAX_REVIEWERS = 2


def pr_to_dict(pr: PullRequestRecord, reviewers: List[str]) -> Dict:
    return {
        "pull_request_id": pr.pull_request_id,
        "pull_request_name": pr.name,
        "author_id": pr.author_id,
        "status": pr.status,
        "assigned_reviewers": list(reviewers),
        "createdAt": pr.created_at,
        "mergedAt": pr.merged_at
    }


async def create_pull_request(
    pull_request_id: str,
    pull_request_name: str,
    author_id: str,
    *,
    store: Optional[EntityStore] = None,
    rng: Optional[random.Random] = None,
    clock: Callable[[], datetime] = utcnow
) -> Dict:
    """
    POST /pullRequest/create
    Create a PR and assign up to 2 random active reviewers from the author's team
    Returns PR object
    """
    require_ids(pull_request_id=pull_request_id, pull_request_name=pull_request_name, author_id=author_id)
    store = store or sql.default_store

    async with store.begin() as uow:
        if await uow.get_pull_request(pull_request_id):
            raise AlreadyExistsError("PR id already exists", code="PR_EXISTS")

        author = await uow.get_user(author_id)
        if not author:
            raise NotFoundError("author not found")

        candidate_ids = await find_candidates(uow, author.team_name, creation_exclusions(author.user_id))
        reviewer_ids = pick_many(candidate_ids, MAX_REVIEWERS, rng)

        now = clock()
        pr = PullRequestRecord(
            pull_request_id=pull_request_id,
            name=pull_request_name,
            author_id=author.user_id,
            status=OPEN,
            created_at=now
        )
        await uow.add_pull_request(pr)
        for reviewer_id in reviewer_ids:
            await uow.add_reviewer(pull_request_id, reviewer_id, now)

        reviewers = await uow.reviewers_of(pull_request_id)
        await uow.commit()

    logger.info("created PR %s by %s, reviewers=%s", pull_request_id, author_id, reviewers)
    return pr_to_dict(pr, reviewers)


async def merge_pull_request(
    pull_request_id: str,
    *,
    store: Optional[EntityStore] = None,
    clock: Callable[[], datetime] = utcnow
) -> Dict:
    """
    POST /pullRequest/merge
    Mark a PR as merged (idempotent: the first merge timestamp is kept)
    Returns PR object
    """
    require_ids(pull_request_id=pull_request_id)
    store = store or sql.default_store

    async with store.begin() as uow:
        pr = await uow.get_pull_request(pull_request_id, lock=True)
        if not pr:
            raise NotFoundError("PR not found")

        if not pr.is_merged:
            await uow.mark_merged(pull_request_id, clock())
            pr = await uow.get_pull_request(pull_request_id)
            logger.info("merged PR %s", pull_request_id)

        reviewers = await uow.reviewers_of(pull_request_id)
        await uow.commit()

    return pr_to_dict(pr, reviewers)


async def reassign_reviewer(
    pull_request_id: str,
    old_user_id: str,
    *,
    store: Optional[EntityStore] = None,
    rng: Optional[random.Random] = None,
    clock: Callable[[], datetime] = utcnow
) -> Dict:
    """
    POST /pullRequest/reassign
    Replace one reviewer with a random active member of that reviewer's team
    Returns dict with pr and replaced_by
    """
    require_ids(pull_request_id=pull_request_id, old_user_id=old_user_id)
    store = store or sql.default_store

    async with store.begin() as uow:
        # Held until commit/rollback: concurrent reassign/merge on this PR wait here
        pr = await uow.get_pull_request(pull_request_id, lock=True)
        if not pr:
            raise NotFoundError("PR not found")

        if pr.is_merged:
            raise ConflictError("cannot reassign on merged PR", code="PR_MERGED")

        current_reviewers = await uow.reviewers_of(pull_request_id)
        if old_user_id not in current_reviewers:
            raise ConflictError("reviewer is not assigned to this PR", code="NOT_ASSIGNED")

        old_reviewer = await uow.get_user(old_user_id)
        if not old_reviewer:
            raise NotFoundError("user not found")

        candidate_ids = await find_candidates(
            uow,
            old_reviewer.team_name,
            reassign_exclusions(old_user_id, pr.author_id, current_reviewers)
        )
        if not candidate_ids:
            logger.warning("no replacement for %s on PR %s", old_user_id, pull_request_id)
            raise ConflictError("no active replacement candidate in team", code="NO_CANDIDATE")

        new_reviewer_id = pick_one(candidate_ids, rng)

        await uow.remove_reviewer(pull_request_id, old_user_id)
        await uow.add_reviewer(pull_request_id, new_reviewer_id, clock())

        reviewers = await uow.reviewers_of(pull_request_id)
        await uow.commit()

    logger.info("PR %s: reviewer %s replaced by %s", pull_request_id, old_user_id, new_reviewer_id)
    return {
        "pr": pr_to_dict(pr, reviewers),
        "replaced_by": new_reviewer_id
    }
