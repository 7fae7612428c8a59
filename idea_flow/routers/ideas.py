"""Business idea endpoints for the FastAPI backend."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request, Response

from ..errors import GenerationFailure
from ..memory import IdeaStore
from ..pipeline import BusinessIdeaPipeline
from ..schemas import BusinessIdea, UserPreferences


router = APIRouter(prefix="/ideas", tags=["ideas"])

FAILURE_STATUS = {
    "PARSE_FAILURE": 422,
    "ORCHESTRATION_FAILURE": 502,
    "SCHEMA_VIOLATION": 500,
}


def _pipeline(request: Request) -> BusinessIdeaPipeline:
    return request.app.state.pipeline


def _store(request: Request) -> IdeaStore:
    return request.app.state.store


@router.get("/health")
async def healthcheck(request: Request) -> Dict[str, Any]:
    """Report store health and the configured provider order."""

    health = _store(request).health_check()
    providers = [slot.name for slot in _pipeline(request).orchestrator.slots]
    return {**health, "providers": providers}


@router.post("", response_model=BusinessIdea)
async def create_idea(request: Request, preferences: UserPreferences) -> BusinessIdea:
    """Generate a business idea from the user's preferences and store it."""

    result = await _pipeline(request).generate_business_idea(preferences)
    if isinstance(result, GenerationFailure):
        raise HTTPException(status_code=FAILURE_STATUS.get(result.code, 500), detail=result.to_dict())
    _store(request).save(result)
    return result


@router.get("", response_model=list[BusinessIdea])
async def list_ideas(request: Request) -> list[BusinessIdea]:
    """Return every stored idea."""

    return _store(request).list()


@router.get("/{idea_id}", response_model=BusinessIdea)
async def fetch_idea(request: Request, idea_id: str) -> BusinessIdea:
    idea = _store(request).get(idea_id)
    if idea is None:
        raise HTTPException(status_code=404, detail=f"No business idea found with id '{idea_id}'.")
    return idea


@router.delete("/{idea_id}", status_code=204)
async def delete_idea(request: Request, idea_id: str) -> Response:
    store = _store(request)
    if store.get(idea_id) is None:
        raise HTTPException(status_code=404, detail=f"No business idea found with id '{idea_id}'.")
    store.delete(idea_id)
    return Response(status_code=204)
