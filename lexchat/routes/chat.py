"""
Chat session routes.
Chats are owned by the user named in the X-User-Id header, which the
authentication layer in front of this service sets.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from ..context import PipelineContext, get_context
from ..logging_config import logger
from ..schemas import CreateChatBody, UpdateChatBody

router = APIRouter(prefix="/api/chats", tags=["chats"])


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def require_chat(ctx: PipelineContext, chat_id: str, user_id: str) -> dict:
    chat = ctx.chats.get_chat(chat_id, user_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


@router.get("")
async def list_chats(
    user_id: str = Depends(get_user_id),
    ctx: PipelineContext = Depends(get_context),
):
    """All chats of the current user, most recently active first."""
    return {"data": ctx.chats.list_chats(user_id)}


@router.post("", status_code=201)
async def create_chat(
    body: CreateChatBody,
    user_id: str = Depends(get_user_id),
    ctx: PipelineContext = Depends(get_context),
):
    return {"data": ctx.chats.create_chat(user_id, body.title)}


@router.get("/{chat_id}")
async def get_chat(
    chat_id: str,
    user_id: str = Depends(get_user_id),
    ctx: PipelineContext = Depends(get_context),
):
    """A chat with its messages in chronological order."""
    chat = require_chat(ctx, chat_id, user_id)
    return {"data": {"chat": chat, "messages": ctx.chats.list_messages(chat_id)}}


@router.patch("/{chat_id}")
async def rename_chat(
    chat_id: str,
    body: UpdateChatBody,
    user_id: str = Depends(get_user_id),
    ctx: PipelineContext = Depends(get_context),
):
    require_chat(ctx, chat_id, user_id)
    ctx.chats.rename_chat(chat_id, body.title)
    return {"data": ctx.chats.get_chat(chat_id, user_id)}


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str,
    user_id: str = Depends(get_user_id),
    ctx: PipelineContext = Depends(get_context),
):
    """
    Delete a chat with its messages, documents, chunks and jobs.

    Vectors and stored files are removed first, while their ids and keys
    can still be looked up.
    """
    require_chat(ctx, chat_id, user_id)

    vector_ids = ctx.chunks.ids_for_chat(chat_id)
    if vector_ids:
        await ctx.vector_index.delete_by_ids(vector_ids)

    for key in ctx.documents.storage_keys_for_chat(chat_id):
        await ctx.storage.delete(key)

    ctx.chats.delete_chat(chat_id)
    logger.info("Chat deleted with its vectors", chat_id=chat_id, vectors=len(vector_ids))
    return {"data": {"success": True}}
