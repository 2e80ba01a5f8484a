from fastapi import APIRouter, Depends

from streamcore.dependencies import get_file_registry
from streamcore.models.schemas import DetectRequest, DetectResponse, ParseRequest, ParseResponse
from streamcore.services.content_parser import parse_content
from streamcore.services.file_edit_detector import FilePathRegistry, detect_file_edit

router = APIRouter(prefix="/render", tags=["render"])


@router.post("/parse", response_model=ParseResponse)
async def parse(request: ParseRequest):
    """Parse one complete buffer. Nothing is remembered between calls; a client
    rendering a live stream keeps its own ``ContentParser`` per response."""
    return ParseResponse(blocks=parse_content(request.text))


@router.post("/detect", response_model=DetectResponse)
async def detect(
    request: DetectRequest,
    registry: FilePathRegistry = Depends(get_file_registry),
):
    return DetectResponse(
        file_edit=detect_file_edit(request.text, request.had_attachments, registry)
    )
