from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


TEAM_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


class TeamMember(BaseModel):
    user_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    is_active: bool


class TeamRequest(BaseModel):
    team_name: str = Field(..., pattern=TEAM_NAME_PATTERN)
    members: List[TeamMember] = Field(..., min_length=1)


class TeamResponse(BaseModel):
    team_name: str
    members: List[TeamMember]


class TeamCreateResponse(BaseModel):
    team: TeamResponse


class UserResponse(BaseModel):
    user_id: str
    username: str
    team_name: str
    is_active: bool


class UserUpdateResponse(BaseModel):
    user: UserResponse


class SetIsActiveRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    is_active: bool


class PullRequestShort(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: str


class PullRequestResponse(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: str
    assigned_reviewers: List[str]
    createdAt: Optional[datetime] = None
    mergedAt: Optional[datetime] = None


class PullRequestCreateRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)
    pull_request_name: str = Field(..., min_length=1)
    author_id: str = Field(..., min_length=1)


class PullRequestCreateResponse(BaseModel):
    pr: PullRequestResponse


class PullRequestMergeRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)


class PullRequestMergeResponse(BaseModel):
    pr: PullRequestResponse


class PullRequestReassignRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)
    old_user_id: str = Field(..., min_length=1)


class PullRequestReassignResponse(BaseModel):
    pr: PullRequestResponse
    replaced_by: str


class GetReviewResponse(BaseModel):
    user_id: str
    pull_requests: List[PullRequestShort]


class BulkDeactivateRequest(BaseModel):
    team_name: str = Field(..., pattern=TEAM_NAME_PATTERN)
    # None: every active member of the team
    user_ids: Optional[List[str]] = None


class ReassignmentInfo(BaseModel):
    pr_id: str
    old_reviewer_id: str
    new_reviewer_id: Optional[str] = None


class BulkDeactivateResponse(BaseModel):
    team_name: str
    deactivated_users: List[str]
    reassignments: List[ReassignmentInfo]


class TopReviewer(BaseModel):
    user_id: str
    username: str
    review_count: int


class StatsResponse(BaseModel):
    total_teams: int
    total_users: int
    active_users: int
    total_pull_requests: int
    open_pull_requests: int
    top_reviewers: List[TopReviewer]
