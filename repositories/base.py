"""Entity store interface.

A store hands out units of work. Everything a service does between
``begin()`` and ``commit()`` becomes visible to other callers at once or not
at all: leaving the ``async with`` block without committing (an error, a
cancelled task, an early return) discards every change made inside it.

``get_pull_request(..., lock=True)`` and ``lock_open_pull_requests_reviewed_by``
take exclusive row locks held until the unit of work ends, so concurrent
reassign/merge/cascade calls on the same pull request serialize.

``lock_users`` takes exclusive locks on user rows and ``active_team_members``
reads candidates under a shared lock, so a reviewer picked by one unit of work
cannot be deactivated by another until the pick is committed.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import AbstractSet, AsyncContextManager, Dict, Iterable, List, Optional

from models.records import PullRequestRecord, TeamRecord, UserRecord


class UnitOfWork(ABC):

    @abstractmethod
    async def get_team(self, team_name: str) -> Optional[TeamRecord]:
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_pull_request(self, pull_request_id: str, lock: bool = False) -> Optional[PullRequestRecord]:
        ...

    @abstractmethod
    async def lock_open_pull_requests_reviewed_by(self, user_ids: Iterable[str]) -> List[PullRequestRecord]:
        """OPEN pull requests reviewed by any of ``user_ids``, locked in id order"""

    @abstractmethod
    async def lock_users(self, user_ids: Iterable[str]) -> List[UserRecord]:
        """Existing users among ``user_ids``, locked in id order"""

    @abstractmethod
    async def active_team_members(self, team_name: str, exclude: AbstractSet[str]) -> List[UserRecord]:
        ...

    @abstractmethod
    async def team_members(self, team_name: str) -> List[UserRecord]:
        ...

    @abstractmethod
    async def reviewers_of(self, pull_request_id: str) -> List[str]:
        """Reviewer ids ordered by assignment time"""

    @abstractmethod
    async def pull_requests_reviewed_by(self, user_id: str) -> List[PullRequestRecord]:
        ...

    @abstractmethod
    async def stats(self, top: int) -> Dict:
        ...

    @abstractmethod
    async def add_team(self, team: TeamRecord) -> None:
        """Insert a team; raises AlreadyExistsError if the name is taken"""

    @abstractmethod
    async def upsert_user(self, user: UserRecord) -> UserRecord:
        ...

    @abstractmethod
    async def set_users_active(self, user_ids: Iterable[str], is_active: bool, updated_at: datetime) -> None:
        ...

    @abstractmethod
    async def add_pull_request(self, pull_request: PullRequestRecord) -> None:
        """Insert a pull request; raises AlreadyExistsError if the id is taken"""

    @abstractmethod
    async def mark_merged(self, pull_request_id: str, merged_at: datetime) -> None:
        """Switch an OPEN pull request to MERGED; a merged one is left as is"""

    @abstractmethod
    async def add_reviewer(self, pull_request_id: str, user_id: str, assigned_at: datetime) -> None:
        ...

    @abstractmethod
    async def remove_reviewer(self, pull_request_id: str, user_id: str) -> None:
        ...

    @abstractmethod
    async def commit(self) -> None:
        ...


class EntityStore(ABC):

    @abstractmethod
    def begin(self) -> AsyncContextManager[UnitOfWork]:
        ...
