from models.models import *
from models import database
from models.records import OPEN, MERGED, PullRequestRecord, TeamRecord, UserRecord
from repositories.base import EntityStore, UnitOfWork
from services.errors import AlreadyExistsError
from sqlalchemy import select, update, delete, and_, func, distinct
from sqlalchemy.exc import IntegrityError
from contextlib import asynccontextmanager
from typing import AbstractSet, Dict, Iterable, List, Optional
from datetime import datetime


def _team_record(team: Team) -> TeamRecord:
    return TeamRecord(
        team_name=team.team_name,
        created_at=team.created_at,
        updated_at=team.updated_at
    )


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        user_id=user.user_id,
        username=user.username,
        team_name=user.team_name,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at
    )


def _pr_record(pr: PullRequest) -> PullRequestRecord:
    return PullRequestRecord(
        pull_request_id=pr.pull_request_id,
        name=pr.name,
        author_id=pr.author_id,
        status=pr.status,
        created_at=pr.created_at,
        merged_at=pr.merged_at
    )


def users_for_update_query(user_ids: List[str]):
    return (
        select(User)
        .where(User.user_id.in_(user_ids))
        .order_by(User.user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def active_members_query(team_name: str, exclude: AbstractSet[str]):
    # FOR SHARE: a concurrent deactivation of a picked candidate waits for our commit,
    # and if it committed first the row is re-checked and drops out
    query = (
        select(User)
        .where(
            and_(
                User.team_name == team_name,
                User.is_active == True
            )
        )
        .order_by(User.user_id)
        .with_for_update(read=True)
        .execution_options(populate_existing=True)
    )
    if exclude:
        query = query.where(User.user_id.notin_(list(exclude)))
    return query


class SqlAlchemyUnitOfWork(UnitOfWork):
    """Unit of work over one AsyncSession / one database transaction"""

    def __init__(self, session):
        self.session = session
        self.committed = False

    async def get_team(self, team_name: str) -> Optional[TeamRecord]:
        result = await self.session.execute(
            select(Team).where(Team.team_name == team_name)
        )
        team = result.scalar_one_or_none()
        return _team_record(team) if team else None

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        result = await self.session.execute(
            select(User)
            .where(User.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        return _user_record(user) if user else None

    async def get_pull_request(self, pull_request_id: str, lock: bool = False) -> Optional[PullRequestRecord]:
        query = (
            select(PullRequest)
            .where(PullRequest.pull_request_id == pull_request_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()

        result = await self.session.execute(query)
        pr = result.scalar_one_or_none()
        return _pr_record(pr) if pr else None

    async def lock_open_pull_requests_reviewed_by(self, user_ids: Iterable[str]) -> List[PullRequestRecord]:
        user_ids = list(user_ids)
        if not user_ids:
            return []

        reviewed = select(Reviewers.pr_id).where(Reviewers.reviewer_id.in_(user_ids))
        result = await self.session.execute(
            select(PullRequest)
            .where(
                and_(
                    PullRequest.status == OPEN,
                    PullRequest.pull_request_id.in_(reviewed)
                )
            )
            .order_by(PullRequest.pull_request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return [_pr_record(pr) for pr in result.scalars().all()]

    async def lock_users(self, user_ids: Iterable[str]) -> List[UserRecord]:
        user_ids = list(user_ids)
        if not user_ids:
            return []

        result = await self.session.execute(users_for_update_query(user_ids))
        return [_user_record(user) for user in result.scalars().all()]

    async def active_team_members(self, team_name: str, exclude: AbstractSet[str]) -> List[UserRecord]:
        result = await self.session.execute(active_members_query(team_name, exclude))
        return [_user_record(user) for user in result.scalars().all()]

    async def team_members(self, team_name: str) -> List[UserRecord]:
        result = await self.session.execute(
            select(User)
            .where(User.team_name == team_name)
            .order_by(User.username, User.user_id)
            .execution_options(populate_existing=True)
        )
        return [_user_record(user) for user in result.scalars().all()]

    async def reviewers_of(self, pull_request_id: str) -> List[str]:
        result = await self.session.execute(
            select(Reviewers.reviewer_id)
            .where(Reviewers.pr_id == pull_request_id)
            .order_by(Reviewers.assigned_at, Reviewers.reviewer_id)
        )
        return [row[0] for row in result.all()]

    async def pull_requests_reviewed_by(self, user_id: str) -> List[PullRequestRecord]:
        result = await self.session.execute(
            select(PullRequest)
            .join(Reviewers, PullRequest.pull_request_id == Reviewers.pr_id)
            .where(Reviewers.reviewer_id == user_id)
            .order_by(PullRequest.created_at.desc(), PullRequest.pull_request_id)
        )
        return [_pr_record(pr) for pr in result.scalars().all()]

    async def stats(self, top: int) -> Dict:
        async def count(query) -> int:
            result = await self.session.execute(query)
            return result.scalar_one()

        stats = {
            "total_teams": await count(select(func.count()).select_from(Team)),
            "total_users": await count(select(func.count()).select_from(User)),
            "active_users": await count(
                select(func.count()).select_from(User).where(User.is_active == True)
            ),
            "total_pull_requests": await count(select(func.count()).select_from(PullRequest)),
            "open_pull_requests": await count(
                select(func.count()).select_from(PullRequest).where(PullRequest.status == OPEN)
            ),
            "top_reviewers": []
        }

        if top > 0:
            review_count = func.count(distinct(Reviewers.pr_id)).label("review_count")
            result = await self.session.execute(
                select(User.user_id, User.username, review_count)
                .join(Reviewers, User.user_id == Reviewers.reviewer_id)
                .group_by(User.user_id, User.username)
                .order_by(review_count.desc(), User.user_id)
                .limit(top)
            )
            stats["top_reviewers"] = [
                {"user_id": user_id, "username": username, "review_count": reviews}
                for user_id, username, reviews in result.all()
            ]

        return stats

    async def add_team(self, team: TeamRecord) -> None:
        if await self.get_team(team.team_name):
            raise AlreadyExistsError("team_name already exists", code="TEAM_EXISTS")

        self.session.add(Team(
            team_name=team.team_name,
            created_at=team.created_at,
            updated_at=team.updated_at
        ))
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise AlreadyExistsError("team_name already exists", code="TEAM_EXISTS") from e

    async def upsert_user(self, user: UserRecord) -> UserRecord:
        result = await self.session.execute(
            select(User).where(User.user_id == user.user_id)
        )
        existing = result.scalar_one_or_none()

        if existing:
            existing.username = user.username
            existing.team_name = user.team_name
            existing.is_active = user.is_active
            existing.updated_at = user.updated_at
        else:
            existing = User(
                user_id=user.user_id,
                username=user.username,
                team_name=user.team_name,
                is_active=user.is_active,
                created_at=user.created_at,
                updated_at=user.updated_at
            )
            self.session.add(existing)

        await self.session.flush()
        return _user_record(existing)

    async def set_users_active(self, user_ids: Iterable[str], is_active: bool, updated_at: datetime) -> None:
        user_ids = list(user_ids)
        if not user_ids:
            return

        await self.session.execute(
            update(User)
            .where(User.user_id.in_(user_ids))
            .values(is_active=is_active, updated_at=updated_at)
        )

    async def add_pull_request(self, pull_request: PullRequestRecord) -> None:
        if await self.get_pull_request(pull_request.pull_request_id):
            raise AlreadyExistsError("PR id already exists", code="PR_EXISTS")

        self.session.add(PullRequest(
            pull_request_id=pull_request.pull_request_id,
            name=pull_request.name,
            author_id=pull_request.author_id,
            status=pull_request.status,
            created_at=pull_request.created_at,
            merged_at=pull_request.merged_at
        ))
        # A concurrent insert of the same id surfaces here
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise AlreadyExistsError("PR id already exists", code="PR_EXISTS") from e

    async def mark_merged(self, pull_request_id: str, merged_at: datetime) -> None:
        await self.session.execute(
            update(PullRequest)
            .where(
                and_(
                    PullRequest.pull_request_id == pull_request_id,
                    PullRequest.status == OPEN
                )
            )
            .values(status=MERGED, merged_at=merged_at)
        )

    async def add_reviewer(self, pull_request_id: str, user_id: str, assigned_at: datetime) -> None:
        self.session.add(Reviewers(pr_id=pull_request_id, reviewer_id=user_id, assigned_at=assigned_at))
        await self.session.flush()

    async def remove_reviewer(self, pull_request_id: str, user_id: str) -> None:
        await self.session.execute(
            delete(Reviewers)
            .where(
                and_(
                    Reviewers.pr_id == pull_request_id,
                    Reviewers.reviewer_id == user_id
                )
            )
        )

    async def commit(self) -> None:
        await self.session.commit()
        self.committed = True


class SqlAlchemyStore(EntityStore):
    """Relational store; row locks are SELECT ... FOR UPDATE.

    Without an explicit session maker the module-level
    ``database.async_session_maker`` is looked up on every ``begin()``.
    """

    def __init__(self, session_maker=None):
        self._session_maker = session_maker

    @asynccontextmanager
    async def begin(self):
        session_maker = self._session_maker or database.async_session_maker
        async with session_maker() as session:
            uow = SqlAlchemyUnitOfWork(session)
            try:
                yield uow
            finally:
                if not uow.committed:
                    await session.rollback()


default_store = SqlAlchemyStore()
