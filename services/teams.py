from models.records import TeamRecord, UserRecord
from repositories import sql
from repositories.base import EntityStore, UnitOfWork
from services.candidates import find_candidates, cascade_exclusions
from services.clock import utcnow
from services.errors import InvalidInputError, NotFoundError, require_ids
from services.tiebreak import pick_one
from schemas import TeamMember as TeamMemberSchema
from typing import Callable, Dict, Iterable, List, Optional
from datetime import datetime
import logging
import random
import re


logger = logging.getLogger(__name__)

TEAM_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_team_name(team_name: str) -> None:
    if not isinstance(team_name, str) or not TEAM_NAME_RE.match(team_name):
        raise InvalidInputError("team_name may contain only letters, digits, '_' and '-'")


def _member_to_dict(user: UserRecord) -> Dict:
    return {
        "user_id": user.user_id,
        "username": user.username,
        "is_active": user.is_active
    }


async def add_team(
    team_name: str,
    members: List[TeamMemberSchema],
    *,
    store: Optional[EntityStore] = None,
    clock: Callable[[], datetime] = utcnow
) -> Dict:
    """
    POST /team/add
    Create a team and create/update its members (an existing user moves into this team)
    """
    validate_team_name(team_name)
    if not members:
        raise InvalidInputError("team must have at least one member")
    for member in members:
        require_ids(user_id=member.user_id, username=member.username)

    store = store or sql.default_store

    async with store.begin() as uow:
        now = clock()
        await uow.add_team(TeamRecord(team_name=team_name, created_at=now, updated_at=now))

        team_members_list = []
        for member in members:
            user = await uow.upsert_user(UserRecord(
                user_id=member.user_id,
                username=member.username,
                team_name=team_name,
                is_active=member.is_active,
                created_at=now,
                updated_at=now
            ))
            team_members_list.append(_member_to_dict(user))

        await uow.commit()

    logger.info("created team %s with %d members", team_name, len(team_members_list))
    return {
        "team_name": team_name,
        "members": team_members_list
    }


async def get_team(team_name: str, *, store: Optional[EntityStore] = None) -> Dict:
    """
    GET /team/get
    Team with all of its members
    """
    require_ids(team_name=team_name)
    store = store or sql.default_store

    async with store.begin() as uow:
        team = await uow.get_team(team_name)
        if not team:
            raise NotFoundError("team not found")
        members = await uow.team_members(team_name)

    return {
        "team_name": team.team_name,
        "members": [_member_to_dict(user) for user in members]
    }


async def cascade_deactivate(
    uow: UnitOfWork,
    targets: List[str],
    rng: Optional[random.Random],
    now: datetime
) -> List[Dict]:
    """
    Take every OPEN PR reviewed by one of ``targets``, swap those reviewers for
    active members of the PR author's team (or drop the slot when nobody is
    left), then deactivate the targets. Runs inside the caller's unit of work.
    Returns one reassignment entry per repaired reviewer slot.
    """
    target_set = set(targets)
    reassignments = []

    # Users before PRs: once the targets are locked no one can pick them as a new
    # reviewer, so the set of PRs locked below is final
    await uow.lock_users(targets)

    for pr in await uow.lock_open_pull_requests_reviewed_by(targets):
        current_reviewers = await uow.reviewers_of(pr.pull_request_id)
        to_replace = [reviewer_id for reviewer_id in current_reviewers if reviewer_id in target_set]

        candidate_ids = []
        author = await uow.get_user(pr.author_id)
        if author:
            candidate_ids = await find_candidates(
                uow,
                author.team_name,
                cascade_exclusions(author.user_id, current_reviewers, target_set)
            )

        for old_reviewer_id in to_replace:
            new_reviewer_id = None
            if candidate_ids:
                new_reviewer_id = pick_one(candidate_ids, rng)
                candidate_ids.remove(new_reviewer_id)

            await uow.remove_reviewer(pr.pull_request_id, old_reviewer_id)
            if new_reviewer_id:
                await uow.add_reviewer(pr.pull_request_id, new_reviewer_id, now)

            reassignments.append({
                "pr_id": pr.pull_request_id,
                "old_reviewer_id": old_reviewer_id,
                "new_reviewer_id": new_reviewer_id
            })

    await uow.set_users_active(targets, False, now)
    return reassignments


async def deactivate_team_members(
    team_name: str,
    user_ids: Optional[Iterable[str]] = None,
    *,
    store: Optional[EntityStore] = None,
    rng: Optional[random.Random] = None,
    clock: Callable[[], datetime] = utcnow
) -> Dict:
    """
    POST /team/bulkDeactivate
    Deactivate team members and repair every open PR they review, atomically.
    ``user_ids=None`` means every active member; an explicit empty list is a no-op.
    Only active members of this team are deactivated, other ids are ignored.
    """
    require_ids(team_name=team_name)
    if isinstance(user_ids, str):
        raise InvalidInputError("user_ids must be a list of ids, not a single string")
    store = store or sql.default_store

    async with store.begin() as uow:
        team = await uow.get_team(team_name)
        if not team:
            raise NotFoundError("team not found")

        active_ids = [user.user_id for user in await uow.active_team_members(team_name, frozenset())]
        if user_ids is None:
            targets = active_ids
        else:
            requested = set(user_ids)
            targets = [user_id for user_id in active_ids if user_id in requested]

        reassignments = []
        if targets:
            reassignments = await cascade_deactivate(uow, targets, rng, clock())
        await uow.commit()

    if targets:
        logger.info(
            "team %s: deactivated %d users, %d reviewer slots repaired",
            team_name, len(targets), len(reassignments)
        )
    return {
        "team_name": team_name,
        "deactivated_users": targets,
        "reassignments": reassignments
    }
