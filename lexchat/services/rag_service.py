"""
RAG (Retrieval-Augmented Generation) service.
Handles query embedding, scoped retrieval, prompt assembly and the
token-streamed answer relay.
"""
import asyncio
import json
import time
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

from ..config import (
    COMPLETION_MAX_TOKENS,
    COMPLETION_TEMPERATURE,
    HISTORY_FETCH_LIMIT,
    HISTORY_PROMPT_TURNS,
    LEGAL_DISCLAIMER,
    RETRIEVAL_TOP_K,
)
from ..context import PipelineContext
from ..errors import CapabilityError
from ..logging_config import logger
from ..utils.helpers import build_citations, section_label

UNAVAILABLE_MESSAGE = (
    "I am unable to process your query right now because the document search "
    "service is not available."
)
FALLBACK_ANSWER = (
    "Sorry, I was unable to process your query. Please try again in a moment.\n\n"
    + LEGAL_DISCLAIMER
)
NO_CONTEXT_TEXT = (
    "No document context available. Answer based on general legal knowledge if possible, "
    "and say that no uploaded document supports the answer."
)


def sse_event(payload: Dict[str, Any]) -> str:
    """Frame one event for the text/event-stream channel."""
    return f"data: {json.dumps(payload)}\n\n"


async def retrieve_context(
    ctx: PipelineContext,
    chat_id: str,
    user_id: str,
    query_vector: List[float],
) -> List[Dict]:
    """
    Nearest chunks for the query, limited to this chat and user.

    Retrieval problems are logged and treated as "no context" so the
    assistant still answers.
    """
    try:
        matches = await ctx.vector_index.query(
            query_vector,
            top_k=RETRIEVAL_TOP_K,
            filter={"chat_id": chat_id, "user_id": user_id},
            return_metadata=True,
        )
        if not matches:
            return []
        return ctx.chunks.get_by_ids([m.id for m in matches])
    except Exception as e:
        logger.warning("Retrieval failed, answering without context", chat_id=chat_id, error=str(e))
        return []


def build_context_text(chunks: List[Dict]) -> str:
    """
    Render retrieved chunks as a numbered list the model can cite.

    Example entry:
        [1] Section 12 (Page 3): The tenant shall ...
    """
    if not chunks:
        return NO_CONTEXT_TEXT

    parts = []
    for i, chunk in enumerate(chunks, start=1):
        label = section_label(chunk.get("section"), chunk.get("page"))
        prefix = f"[{i}] {label}: " if label else f"[{i}] "
        parts.append(prefix + chunk["content"])
    return "\n\n".join(parts)


def build_system_prompt(context_text: str) -> str:
    return (
        "You are a legal document explainer. You help people understand legal text "
        "in plain, everyday language.\n"
        "You do NOT provide legal advice.\n\n"
        "Rules:\n"
        "1. Explain legal terms simply and highlight risks and obligations clearly.\n"
        "2. Every claim must cite the context item it comes from using its [N] marker, "
        "including the section, clause, or page where one is given.\n"
        "3. If you are uncertain, say: \"I'm not certain about this based on the document.\"\n"
        f"4. Always end your answer with: \"{LEGAL_DISCLAIMER}\"\n"
        "5. Format responses with clear headings and bullet points.\n\n"
        "Retrieved Context:\n"
        f"{context_text}"
    )


def build_messages(query: str, context_text: str, history: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """System prompt, then the last turns of history, then the current question."""
    messages = [{"role": "system", "content": build_system_prompt(context_text)}]
    messages.extend(history[-HISTORY_PROMPT_TURNS:])
    messages.append({"role": "user", "content": query})
    return messages


def _persist_answer(ctx: PipelineContext, chat_id: str, content: str, citations: List[Dict]) -> str:
    message_id = ctx.chats.store_message(chat_id, "assistant", content, citations=citations or None)
    ctx.chats.touch_chat(chat_id)
    return message_id


async def relay_completion(
    ctx: PipelineContext,
    chat_id: str,
    messages: List[Dict[str, str]],
    citations: List[Dict],
) -> AsyncGenerator[str, None]:
    """
    Stream completion tokens to the client and persist the final answer once.

    Emits ``token`` events as fragments arrive, at most one ``error`` event
    if the upstream stream breaks (the stored answer then becomes the
    fallback apology), and always a final ``done`` event carrying the id of
    the stored assistant message. If the client goes away mid-stream the
    relay stops and stores what it has.
    """
    answer = ""
    error_event = None
    t = time.perf_counter()
    try:
        async for delta in ctx.completion.stream_chat(
            messages,
            temperature=COMPLETION_TEMPERATURE,
            max_tokens=COMPLETION_MAX_TOKENS,
        ):
            if not delta:
                continue
            answer += delta
            yield sse_event({"type": "token", "content": delta})

        if LEGAL_DISCLAIMER not in answer:
            tail = ("\n\n" if answer else "") + LEGAL_DISCLAIMER
            answer += tail
            yield sse_event({"type": "token", "content": tail})

    except (GeneratorExit, asyncio.CancelledError):
        logger.info("Client disconnected mid-stream", chat_id=chat_id, received_chars=len(answer))
        _persist_answer(ctx, chat_id, answer or FALLBACK_ANSWER, citations)
        raise

    except Exception as e:
        logger.error("Completion stream failed", chat_id=chat_id, error=str(e), partial_chars=len(answer))
        error_event = sse_event({"type": "error", "message": str(e) or "Completion service error"})
        answer = FALLBACK_ANSWER

    # Stored before the error or done event goes out
    message_id = _persist_answer(ctx, chat_id, answer, citations)
    logger.info(
        "Answer stored",
        chat_id=chat_id,
        message_id=message_id,
        chars=len(answer),
        seconds=round(time.perf_counter() - t, 2),
    )
    if error_event:
        yield error_event
    yield sse_event({"type": "done", "messageId": message_id})


async def stream_answer(
    ctx: PipelineContext,
    chat_id: str,
    user_id: str,
    query: str,
    query_vector: List[float],
    exclude_message_ids: Optional[List[str]] = None,
) -> AsyncGenerator[str, None]:
    """
    Retrieve context, assemble the prompt and relay the streamed answer.

    Yields:
        SSE-formatted strings for streaming to client
    """
    start_time = time.time()

    chunks = await retrieve_context(ctx, chat_id, user_id, query_vector)
    logger.info("Retrieved chunks", chat_id=chat_id, count=len(chunks))

    history = ctx.chats.recent_messages(chat_id, HISTORY_FETCH_LIMIT, exclude_ids=exclude_message_ids)
    context_text = build_context_text(chunks)
    messages = build_messages(query, context_text, history)

    logger.info(
        "Sending to LLM",
        chat_id=chat_id,
        context_length=len(context_text),
        history_turns=len(messages) - 2,
    )

    relay = relay_completion(ctx, chat_id, messages, build_citations(chunks))
    try:
        async for event in relay:
            yield event
    finally:
        # Closing the relay here stores the partial answer on disconnect
        await relay.aclose()

    elapsed_ms = round((time.time() - start_time) * 1000, 2)
    logger.info("Query completed", chat_id=chat_id, time_ms=elapsed_ms)


def degraded_response(ctx: PipelineContext, chat_id: str) -> Dict[str, Any]:
    """Canned answer stored and returned when the embedder is unavailable."""
    content = f"{UNAVAILABLE_MESSAGE} {LEGAL_DISCLAIMER}"
    message_id = _persist_answer(ctx, chat_id, content, [])
    return {"data": {"messageId": message_id, "content": content}}


async def handle_rag_query(
    ctx: PipelineContext,
    chat_id: str,
    user_id: str,
    query: str,
    user_message_id: Optional[str] = None,
) -> Union[Dict[str, Any], AsyncGenerator[str, None]]:
    """
    Main RAG query handler. The user's message must already be stored.

    Args:
        ctx: Capability handles and stores
        chat_id: The chat being answered
        user_id: Owner of the chat; scopes retrieval
        query: The user's question
        user_message_id: Id of the stored question, kept out of the history

    Returns:
        An async generator of SSE events, or the JSON envelope of the
        degraded answer when the query cannot be embedded
    """
    query = query.strip()
    try:
        vectors = await ctx.embedder.embed([query])
        if len(vectors) != 1:
            raise CapabilityError(f"Embedder returned {len(vectors)} vectors for one query")
    except Exception as e:
        # Any embedding failure answers with the canned reply, never a bare 500
        logger.warning("Embedder unavailable, answering in degraded mode", chat_id=chat_id, error=str(e))
        return degraded_response(ctx, chat_id)

    return stream_answer(
        ctx,
        chat_id,
        user_id,
        query,
        vectors[0],
        exclude_message_ids=[user_message_id] if user_message_id else None,
    )
