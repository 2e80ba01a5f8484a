from pydantic import BaseModel, Field
from typing import Annotated, Literal, Optional, Union


# --- Parsed content ---
class ListItem(BaseModel):
    prefix: str
    content: str


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    content: str
    transient: bool = False


class HeadingBlock(BaseModel):
    type: Literal["heading"] = "heading"
    content: str
    level: int = Field(..., ge=1, le=6)


class BlockquoteBlock(BaseModel):
    type: Literal["blockquote"] = "blockquote"
    content: str


class OrderedListBlock(BaseModel):
    type: Literal["orderedList"] = "orderedList"
    items: list[ListItem]


class UnorderedListBlock(BaseModel):
    type: Literal["unorderedList"] = "unorderedList"
    items: list[ListItem]


class CodeBlock(BaseModel):
    type: Literal["code"] = "code"
    content: str
    language: str = "code"


class HorizontalRuleBlock(BaseModel):
    type: Literal["horizontalRule"] = "horizontalRule"


ParsedBlock = Annotated[
    Union[
        TextBlock,
        HeadingBlock,
        BlockquoteBlock,
        OrderedListBlock,
        UnorderedListBlock,
        CodeBlock,
        HorizontalRuleBlock,
    ],
    Field(discriminator="type"),
]


# --- File edits ---
class FileEntry(BaseModel):
    filename: str
    content: str = ""
    path: Optional[str] = None


class FileEditPayload(BaseModel):
    summary: str
    files: list[FileEntry]


class Attachment(BaseModel):
    filename: str
    content: str
    path: Optional[str] = None


# --- Chat ---
class HistoryMessage(BaseModel):
    role: Literal["user", "assistant", "system"] = "user"
    text: str


class ChatResult(BaseModel):
    text: str = ""
    context: Optional[list[int]] = None
    degraded: bool = False


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=200000)
    model_id: Optional[str] = None
    history: Optional[list[HistoryMessage]] = None
    context: Optional[list[int]] = None
    attachments: list[Attachment] = []


class StopResponse(BaseModel):
    text: str = ""


# --- Models ---
class ModelListResult(BaseModel):
    models: list[str] = []
    error: Optional[str] = None


# --- Render ---
class ParseRequest(BaseModel):
    text: str


class ParseResponse(BaseModel):
    blocks: list[ParsedBlock]


class DetectRequest(BaseModel):
    text: str
    had_attachments: bool = False


class DetectResponse(BaseModel):
    file_edit: Optional[FileEditPayload] = None


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str = "0.1.0"
    providers: dict[str, bool] = {}
