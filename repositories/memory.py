"""In-process entity store.

Used by the tests and handy for local experiments. Each unit of work keeps
its writes in private overlays and publishes them in a single synchronous
step on commit, so no other coroutine ever observes half a transaction.
Pull-request rows are locked with one ``asyncio.Lock`` per id, held until
the unit of work ends.
"""
import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import AbstractSet, Dict, Iterable, List, Optional, Set, Tuple

from models.records import OPEN, MERGED, PullRequestRecord, ReviewerLink, TeamRecord, UserRecord
from repositories.base import EntityStore, UnitOfWork
from services.errors import AlreadyExistsError


logger = logging.getLogger(__name__)


class InMemoryUnitOfWork(UnitOfWork):

    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._teams: Dict[str, TeamRecord] = {}
        self._users: Dict[str, UserRecord] = {}
        self._pull_requests: Dict[str, PullRequestRecord] = {}
        self._reviewers: Dict[str, Tuple[ReviewerLink, ...]] = {}
        self._new_teams: Set[str] = set()
        self._new_pull_requests: Set[str] = set()
        self._held: Dict[str, asyncio.Lock] = {}
        self.committed = False

    # Merged views: own writes first, committed state underneath

    def _team(self, team_name: str) -> Optional[TeamRecord]:
        return self._teams.get(team_name, self._store.teams.get(team_name))

    def _user(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id, self._store.users.get(user_id))

    def _pull_request(self, pull_request_id: str) -> Optional[PullRequestRecord]:
        return self._pull_requests.get(pull_request_id, self._store.pull_requests.get(pull_request_id))

    def _links(self, pull_request_id: str) -> Tuple[ReviewerLink, ...]:
        if pull_request_id in self._reviewers:
            return self._reviewers[pull_request_id]
        return self._store.reviewers.get(pull_request_id, ())

    def _all_users(self) -> List[UserRecord]:
        return list({**self._store.users, **self._users}.values())

    def _all_pull_requests(self) -> List[PullRequestRecord]:
        return list({**self._store.pull_requests, **self._pull_requests}.values())

    async def _lock(self, pull_request_id: str) -> None:
        if pull_request_id in self._held:
            return
        lock = self._store.row_locks[pull_request_id]
        await lock.acquire()
        self._held[pull_request_id] = lock

    def release(self) -> None:
        for lock in reversed(list(self._held.values())):
            lock.release()
        self._held.clear()

    async def get_team(self, team_name: str) -> Optional[TeamRecord]:
        return self._team(team_name)

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._user(user_id)

    async def get_pull_request(self, pull_request_id: str, lock: bool = False) -> Optional[PullRequestRecord]:
        # No lock entry for ids that do not exist, row_locks would only grow
        if lock and self._pull_request(pull_request_id):
            await self._lock(pull_request_id)
        return self._pull_request(pull_request_id)

    async def lock_open_pull_requests_reviewed_by(self, user_ids: Iterable[str]) -> List[PullRequestRecord]:
        wanted = set(user_ids)
        if not wanted:
            return []

        def affected() -> List[str]:
            return sorted(
                pr.pull_request_id for pr in self._all_pull_requests()
                if pr.status == OPEN
                and any(link.user_id in wanted for link in self._links(pr.pull_request_id))
            )

        # Rows may move on while we wait, so repeat until every affected row is held.
        # Locks are only ever taken in ascending id order: a newly affected row that
        # sorts below one already taken here means starting over.
        acquired: List[str] = []
        while True:
            pending = [pr_id for pr_id in affected() if pr_id not in self._held]
            if not pending:
                break
            if acquired and pending[0] < acquired[-1]:
                for pull_request_id in reversed(acquired):
                    self._held.pop(pull_request_id).release()
                acquired = []
                continue
            for pull_request_id in pending:
                await self._lock(pull_request_id)
                acquired.append(pull_request_id)

        return [self._pull_request(pr_id) for pr_id in affected()]

    async def lock_users(self, user_ids: Iterable[str]) -> List[UserRecord]:
        # Candidate reads and the commit run without yielding to the loop, so user rows need no lock
        users = [self._user(user_id) for user_id in sorted(set(user_ids))]
        return [user for user in users if user]

    async def active_team_members(self, team_name: str, exclude: AbstractSet[str]) -> List[UserRecord]:
        return sorted(
            (user for user in self._all_users()
             if user.team_name == team_name and user.is_active and user.user_id not in exclude),
            key=lambda user: user.user_id
        )

    async def team_members(self, team_name: str) -> List[UserRecord]:
        return sorted(
            (user for user in self._all_users() if user.team_name == team_name),
            key=lambda user: (user.username, user.user_id)
        )

    async def reviewers_of(self, pull_request_id: str) -> List[str]:
        links = sorted(self._links(pull_request_id), key=lambda link: (link.assigned_at, link.user_id))
        return [link.user_id for link in links]

    async def pull_requests_reviewed_by(self, user_id: str) -> List[PullRequestRecord]:
        prs = [
            pr for pr in self._all_pull_requests()
            if any(link.user_id == user_id for link in self._links(pr.pull_request_id))
        ]
        prs.sort(key=lambda pr: pr.pull_request_id)
        prs.sort(key=lambda pr: pr.created_at, reverse=True)
        return prs

    async def stats(self, top: int) -> Dict:
        users = self._all_users()
        prs = self._all_pull_requests()

        counts: Dict[str, int] = defaultdict(int)
        for pr in prs:
            for user_id in {link.user_id for link in self._links(pr.pull_request_id)}:
                counts[user_id] += 1

        ranking = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:max(top, 0)]
        return {
            "total_teams": len({**self._store.teams, **self._teams}),
            "total_users": len(users),
            "active_users": sum(1 for user in users if user.is_active),
            "total_pull_requests": len(prs),
            "open_pull_requests": sum(1 for pr in prs if pr.status == OPEN),
            "top_reviewers": [
                {"user_id": user_id, "username": self._user(user_id).username, "review_count": reviews}
                for user_id, reviews in ranking
            ]
        }

    async def add_team(self, team: TeamRecord) -> None:
        if self._team(team.team_name):
            raise AlreadyExistsError("team_name already exists", code="TEAM_EXISTS")
        self._teams[team.team_name] = team
        self._new_teams.add(team.team_name)

    async def upsert_user(self, user: UserRecord) -> UserRecord:
        existing = self._user(user.user_id)
        if existing:
            user = replace(
                existing,
                username=user.username,
                team_name=user.team_name,
                is_active=user.is_active,
                updated_at=user.updated_at
            )
        self._users[user.user_id] = user
        return user

    async def set_users_active(self, user_ids: Iterable[str], is_active: bool, updated_at: datetime) -> None:
        for user_id in user_ids:
            user = self._user(user_id)
            if user:
                self._users[user_id] = replace(user, is_active=is_active, updated_at=updated_at)

    async def add_pull_request(self, pull_request: PullRequestRecord) -> None:
        if self._pull_request(pull_request.pull_request_id):
            raise AlreadyExistsError("PR id already exists", code="PR_EXISTS")
        self._pull_requests[pull_request.pull_request_id] = pull_request
        self._new_pull_requests.add(pull_request.pull_request_id)

    async def mark_merged(self, pull_request_id: str, merged_at: datetime) -> None:
        pr = self._pull_request(pull_request_id)
        if pr and pr.status == OPEN:
            self._pull_requests[pull_request_id] = replace(pr, status=MERGED, merged_at=merged_at)

    async def add_reviewer(self, pull_request_id: str, user_id: str, assigned_at: datetime) -> None:
        links = self._links(pull_request_id)
        if any(link.user_id == user_id for link in links):
            raise AlreadyExistsError(f"{user_id} already reviews {pull_request_id}")
        self._reviewers[pull_request_id] = links + (ReviewerLink(user_id, assigned_at),)

    async def remove_reviewer(self, pull_request_id: str, user_id: str) -> None:
        links = self._links(pull_request_id)
        self._reviewers[pull_request_id] = tuple(link for link in links if link.user_id != user_id)

    async def commit(self) -> None:
        store = self._store

        # Conditional insert: another unit may have created the same key meanwhile
        for team_name in self._new_teams:
            if team_name in store.teams:
                raise AlreadyExistsError("team_name already exists", code="TEAM_EXISTS")
        for pull_request_id in self._new_pull_requests:
            if pull_request_id in store.pull_requests:
                raise AlreadyExistsError("PR id already exists", code="PR_EXISTS")

        store.teams.update(self._teams)
        store.users.update(self._users)
        store.pull_requests.update(self._pull_requests)
        store.reviewers.update(self._reviewers)
        self.committed = True


class InMemoryStore(EntityStore):

    def __init__(self):
        self.teams: Dict[str, TeamRecord] = {}
        self.users: Dict[str, UserRecord] = {}
        self.pull_requests: Dict[str, PullRequestRecord] = {}
        self.reviewers: Dict[str, Tuple[ReviewerLink, ...]] = {}
        self.row_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def begin(self):
        uow = InMemoryUnitOfWork(self)
        try:
            yield uow
        finally:
            if not uow.committed:
                logger.debug("rolling back in-memory unit of work")
            uow.release()
