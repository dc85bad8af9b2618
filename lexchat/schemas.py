"""
Pydantic schemas for request/response validation and the ingestion queue message.
"""
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import MAX_MESSAGE_CHARS

Role = Literal["user", "assistant"]


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PARSING = "parsing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    READY = "ready"
    FAILED = "failed"


class CreateChatBody(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)


class UpdateChatBody(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class SendMessageBody(BaseModel):
    """JSON body for posting a message; files arrive as multipart instead."""
    content: Optional[str] = Field(None, max_length=MAX_MESSAGE_CHARS)
    url: Optional[str] = Field(None, description="Web page to ingest as a document")


class IngestionMessage(BaseModel):
    """
    Queue message that triggers ingestion of one document.
    Exactly one of r2_key / source_url is present.
    """
    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(..., alias="documentId")
    job_id: str = Field(..., alias="jobId")
    chat_id: str = Field(..., alias="chatId")
    user_id: str = Field(..., alias="userId")
    r2_key: Optional[str] = Field(None, alias="r2Key")
    source_url: Optional[str] = Field(None, alias="sourceUrl")
    filename: str
    file_type: str = Field(..., alias="fileType")

    @model_validator(mode="after")
    def _one_source(self):
        if bool(self.r2_key) == bool(self.source_url):
            raise ValueError("exactly one of r2Key or sourceUrl must be set")
        return self

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
