from fastapi import APIRouter, Depends

from streamcore.dependencies import get_llm_router
from streamcore.models.schemas import ModelListResult
from streamcore.services.llm_router import LLMRouter

router = APIRouter(prefix="/models", tags=["models"])


@router.get("", response_model=ModelListResult)
async def list_models(llm_router: LLMRouter = Depends(get_llm_router)):
    """Merged model catalog; provider failures are reported in ``error``."""
    return await llm_router.fetch_model_names()
