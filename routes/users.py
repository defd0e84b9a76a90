from fastapi import APIRouter, status, Query
from schemas import (
    SetIsActiveRequest, UserUpdateResponse, GetReviewResponse,
    ErrorResponse
)
from services import users as user_service
from services.errors import ServiceError
from routes.errors import to_http_exception, internal_error


router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/setIsActive", status_code=status.HTTP_200_OK,
                   summary="Set the user's active flag",
                   response_model=UserUpdateResponse,
                   responses={404: {"model": ErrorResponse}})
async def setIsActive(request: SetIsActiveRequest):
    try:
        user = await user_service.set_is_active(request.user_id, request.is_active)
        return UserUpdateResponse(user=user)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)


@router.get("/getReview", status_code=status.HTTP_200_OK,
                  summary="PRs where the user is assigned as a reviewer",
                  response_model=GetReviewResponse)
async def getReview(user_id: str = Query(..., min_length=1, description="User id")):
    try:
        pull_requests = await user_service.get_review(user_id)
        return GetReviewResponse(
            user_id=user_id,
            pull_requests=pull_requests
        )
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)
