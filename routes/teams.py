from fastapi import APIRouter, status, Query
from schemas import (
    TeamRequest, TeamCreateResponse, TeamResponse,
    BulkDeactivateRequest, BulkDeactivateResponse,
    ErrorResponse
)
from services import teams as team_service
from services.errors import ServiceError
from routes.errors import to_http_exception, internal_error


router = APIRouter(prefix="/team", tags=["Teams"])


@router.post("/add", status_code=status.HTTP_201_CREATED,
                  summary="Create a team with members (creates/updates users)",
                  response_model=TeamCreateResponse,
                  responses={400: {"model": ErrorResponse}})
async def add(request: TeamRequest):
    try:
        team = await team_service.add_team(request.team_name, request.members)
        return TeamCreateResponse(team=team)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)


@router.get("/get", status_code=status.HTTP_200_OK,
                 summary="Get a team with its members",
                 response_model=TeamResponse,
                 responses={404: {"model": ErrorResponse}})
async def get(team_name: str = Query(..., min_length=1, description="Unique team name")):
    try:
        team = await team_service.get_team(team_name)
        return TeamResponse(**team)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)


@router.post("/bulkDeactivate", status_code=status.HTTP_200_OK,
                  summary="Deactivate team members and reassign their open reviews",
                  response_model=BulkDeactivateResponse,
                  responses={404: {"model": ErrorResponse}})
async def bulk_deactivate(request: BulkDeactivateRequest):
    try:
        result = await team_service.deactivate_team_members(request.team_name, request.user_ids)
        return BulkDeactivateResponse(**result)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error(e)
