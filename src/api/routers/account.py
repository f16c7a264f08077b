"""Account routes: credits balance and API key management."""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import ServiceContainer, get_current_user, get_services
from api.schemas import (
    ApiKeyCreatedResponse,
    ApiKeyCreateRequest,
    ApiKeyListResponse,
    CreditsResponse,
    MessageResponse,
)

router = APIRouter(tags=["Account"])


@router.get(
    "/api/credits",
    response_model=CreditsResponse,
    summary="Get credits",
    description="Current credits balance and the cost of one generation.",
)
async def get_credits(
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    return {
        "user_id": user_id,
        "credits": await services.credits.get_credits(user_id),
        "generation_cost": services.credits.generation_cost,
    }


@router.post(
    "/api/keys",
    response_model=ApiKeyCreatedResponse,
    status_code=201,
    summary="Create API key",
    description="Create an API key for /generate-video-api. The raw key is returned only once.",
)
async def create_api_key(
    body: ApiKeyCreateRequest,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    created = await services.api_keys.create_key(user_id, body.name)
    return created.to_dict()


@router.get("/api/keys", response_model=ApiKeyListResponse, summary="List API keys")
async def list_api_keys(
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    keys = await services.api_keys.list_keys(user_id)
    return {"keys": [k.to_dict() for k in keys]}


@router.delete(
    "/api/keys/{key_id}",
    response_model=MessageResponse,
    summary="Revoke API key",
    description="Deactivate an API key. It stays listed but no longer authenticates.",
    responses={404: {"description": "API key not found"}},
)
async def revoke_api_key(
    key_id: str,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    if not await services.api_keys.revoke_key(key_id, user_id):
        raise HTTPException(status_code=404, detail="API key not found")
    return {"message": "API key revoked"}
