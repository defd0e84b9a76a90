from fastapi import APIRouter, status
from schemas import (
    PullRequestCreateRequest, PullRequestCreateResponse,
    PullRequestMergeRequest, PullRequestMergeResponse,
    PullRequestReassignRequest, PullRequestReassignResponse,
    ErrorResponse
)
from services import pull_request as pr_service
from services.errors import ServiceError
from routes.errors import to_http_exception, internal_error


router = APIRouter(prefix="/pullRequest", tags=["PullRequests"])


@router.post("/create", status_code=status.HTTP_201_CREATED,
                summary="Create a PR and assign up to 2 reviewers from the author's team",
                response_model=PullRequestCreateResponse,
                responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def create(request: PullRequestCreateRequest):
    try:
        pr = await pr_service.create_pull_request(
            request.pull_request_id,
            request.pull_request_name,
            request.author_id
        )
        return PullRequestCreateResponse(pr=pr)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)


@router.post("/merge", status_code=status.HTTP_200_OK,
                summary="Mark a PR as MERGED (idempotent)",
                response_model=PullRequestMergeResponse,
                responses={404: {"model": ErrorResponse}})
async def merge(request: PullRequestMergeRequest):
    try:
        pr = await pr_service.merge_pull_request(request.pull_request_id)
        return PullRequestMergeResponse(pr=pr)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)


@router.post("/reassign", status_code=status.HTTP_200_OK,
                summary="Replace one reviewer with another member of that reviewer's team",
                response_model=PullRequestReassignResponse,
                responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def reassign(request: PullRequestReassignRequest):
    try:
        result = await pr_service.reassign_reviewer(
            request.pull_request_id,
            request.old_user_id
        )
        return PullRequestReassignResponse(
            pr=result["pr"],
            replaced_by=result["replaced_by"]
        )
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)
