import json
import logging

from streamcore.models.schemas import Attachment
from streamcore.services.file_edit_detector import FilePathRegistry

logger = logging.getLogger(__name__)

FILE_EDIT_INSTRUCTIONS = (
    "If you modify any of the attached files, reply with JSON of the form "
    '{"summary": "...", "files": [{"filename": "...", "content": "..."}]} '
    "containing the complete new content of each changed file."
)


def compose_prompt(
    text: str,
    attachments: list[Attachment],
    registry: FilePathRegistry | None = None,
) -> str:
    """Fold extracted file text into the outgoing prompt.

    With attachments the prompt becomes a JSON document carrying the files,
    the edit instructions and the user's text. Paths found in it are
    registered so a later file-edit payload can be mapped back to the files
    on disk.
    """
    if not attachments:
        return text

    files = [
        attachment.model_dump(exclude_none=True)
        for attachment in attachments
    ]
    composed = json.dumps(
        {"instructions": FILE_EDIT_INSTRUCTIONS, "files": files, "prompt": text},
        indent=2,
        ensure_ascii=False,
    )
    if registry is not None:
        registered = registry.register_from_json(composed)
        logger.debug("Registered %d attachment paths", registered)
    logger.debug("Composed prompt with %d attached files", len(files))
    return composed
