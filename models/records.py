"""Plain row snapshots handed between the stores and the services.

Records are frozen: a unit of work changes a row by replacing its record,
which is what lets the in-memory store publish a whole transaction at once.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


OPEN = "OPEN"
MERGED = "MERGED"


@dataclass(frozen=True)
class TeamRecord:
    team_name: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UserRecord:
    user_id: str
    username: str
    team_name: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class PullRequestRecord:
    pull_request_id: str
    name: str
    author_id: str
    status: str
    created_at: datetime
    merged_at: Optional[datetime] = None

    @property
    def is_merged(self) -> bool:
        return self.status == MERGED


@dataclass(frozen=True)
class ReviewerLink:
    user_id: str
    assigned_at: datetime
