import asyncio
import json
import logging

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from streamcore.dependencies import get_file_registry, get_llm_router
from streamcore.errors import ErrorType, ProviderError, friendly_error_message
from streamcore.models.schemas import ChatRequest, StopResponse
from streamcore.services.attachments import compose_prompt
from streamcore.services.content_parser import parse_content
from streamcore.services.file_edit_detector import FilePathRegistry, detect_file_edit
from streamcore.services.llm_router import LLMRouter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])


def _error_event(exc: BaseException) -> dict:
    kind = exc.error_type if isinstance(exc, ProviderError) else ErrorType.UNKNOWN
    return {
        "event": "error",
        "data": json.dumps({"error": friendly_error_message(exc), "kind": kind.value}),
    }


@router.post("/completions")
async def chat_completions(
    request: ChatRequest,
    llm_router: LLMRouter = Depends(get_llm_router),
    registry: FilePathRegistry = Depends(get_file_registry),
):
    """Stream chat completion via SSE."""

    async def event_generator():
        had_attachments = bool(request.attachments)
        prompt = compose_prompt(request.message, request.attachments, registry)
        deltas: asyncio.Queue = asyncio.Queue()

        try:
            handle = llm_router.send_message(
                prompt,
                request.model_id,
                history=request.history,
                on_delta=deltas.put_nowait,
                context=request.context,
            )
        except ProviderError as e:
            logger.warning("Chat request rejected: %s", e.message)
            yield _error_event(e)
            return

        # Every delta is queued before the task completes, so the sentinel arrives last.
        handle.result.add_done_callback(lambda _: deltas.put_nowait(None))
        try:
            while True:
                text = await deltas.get()
                if text is None:
                    break
                yield {"event": "token", "data": json.dumps({"text": text})}

            result = await handle.result
            llm_router.record_exchange(request.message, result.text)

            if result.context:
                yield {"event": "context", "data": json.dumps({"context": result.context})}

            file_edit = detect_file_edit(result.text, had_attachments, registry)
            if file_edit is not None:
                yield {"event": "file_edit", "data": file_edit.model_dump_json()}
            else:
                blocks = [block.model_dump() for block in parse_content(result.text)]
                yield {"event": "blocks", "data": json.dumps({"blocks": blocks})}

            yield {
                "event": "done",
                "data": json.dumps({"status": "complete", "degraded": result.degraded}),
            }

        except ProviderError as e:
            logger.warning("Chat streaming failed: %s", e.message)
            yield _error_event(e)
        except Exception as e:
            logger.exception("Chat streaming failed")
            yield _error_event(e)
        finally:
            # Client went away mid-stream.
            if not handle.result.done():
                handle.cancel()

    return EventSourceResponse(event_generator())


@router.post("/stop", response_model=StopResponse)
async def stop_chat(llm_router: LLMRouter = Depends(get_llm_router)):
    """Terminate the active response and return what it had produced."""
    return StopResponse(text=llm_router.stop())


@router.delete("/history")
async def clear_history(
    llm_router: LLMRouter = Depends(get_llm_router),
    registry: FilePathRegistry = Depends(get_file_registry),
):
    llm_router.clear_history()
    registry.clear()
    return {"status": "cleared"}
