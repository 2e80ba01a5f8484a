from fastapi import APIRouter, Depends

from streamcore.dependencies import get_llm_router
from streamcore.models.schemas import HealthResponse
from streamcore.services.llm_router import LLMRouter

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(llm_router: LLMRouter = Depends(get_llm_router)):
    """Service health plus which providers have the credentials they need."""
    return HealthResponse(providers=llm_router.configured_providers())
