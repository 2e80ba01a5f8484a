from functools import lru_cache

from streamcore.config import get_settings
from streamcore.services.file_edit_detector import FilePathRegistry
from streamcore.services.llm_router import LLMRouter


@lru_cache
def get_llm_router() -> LLMRouter:
    # One router per process: history and in-flight sessions outlive a request.
    return LLMRouter(get_settings())


@lru_cache
def get_file_registry() -> FilePathRegistry:
    return FilePathRegistry()
