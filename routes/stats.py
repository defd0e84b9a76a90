from fastapi import APIRouter, status, Query
from typing import Optional
from schemas import StatsResponse, ErrorResponse
from services import stats as stats_service
from services.errors import ServiceError
from routes.errors import to_http_exception, internal_error


router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("", status_code=status.HTTP_200_OK,
                summary="Entity counts and the most assigned reviewers",
                response_model=StatsResponse,
                responses={400: {"model": ErrorResponse}})
async def get_stats(top: Optional[int] = Query(None, description="How many top reviewers to return")):
    try:
        stats = await stats_service.get_stats(top)
        return StatsResponse(**stats)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)
