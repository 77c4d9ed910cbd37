"""
API endpoints for chats and chat messages.

Chats belong to the user who created them; only the owner can read,
rename, delete or post to a chat.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, List

from fastapi import APIRouter, Depends, Path, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.api.v1.dependencies import ActorContext, require_user
from flashquery.api.v1.endpoints.databases import can_access_database
from flashquery.core.exceptions import AuthorizationError, DownstreamServiceError, NotFoundError
from flashquery.db.repositories.chats import DEFAULT_CHAT_TITLE, ChatRepository, MessageRepository
from flashquery.db.repositories.databases import DatabaseRepository
from flashquery.db.session import get_session
from flashquery.models.chat import Chat
from flashquery.schemas.chat import ChatCreate, ChatResponse, ChatUpdate, LastMessage, MessageCreate, MessageResponse
from flashquery.schemas.database import DatabaseSummary
from flashquery.services.query_engine import QueryEngineClient, get_query_engine
from flashquery.utils.datetime import utc_now
from flashquery.utils.error_handling import success_response

logger = logging.getLogger("flashquery.chats")

router = APIRouter()

TITLE_LENGTH = 50

NO_RESPONSE = "No response from AI"


def chat_title_from(message: str) -> str:
    """Derive a chat title from the first message."""
    message = message.strip()
    if len(message) > TITLE_LENGTH:
        return message[:TITLE_LENGTH] + "..."
    return message


async def get_owned_chat(session: AsyncSession, chat_id: str, actor: ActorContext) -> Chat:
    """
    Load a chat owned by the actor.

    Raises:
        NotFoundError: If the chat does not exist
        AuthorizationError: If the chat belongs to someone else
    """
    chat = await ChatRepository(session).get_by_id(chat_id)
    if not chat:
        raise NotFoundError("Chat not found")
    if chat.user_id != actor.user_id:
        raise AuthorizationError("Unauthorized")
    return chat


async def describe_chat(session: AsyncSession, chat: Chat) -> Dict[str, Any]:
    """Chat wire shape with message count and last message preview."""
    message_repo = MessageRepository(session)
    last = await message_repo.last_for_chat(chat.id)

    last_message = None
    if last:
        last_message = LastMessage(
            message=last.assistant_message or last.user_message,
            role="assistant" if last.assistant_message else "user",
            created_at=last.created_at,
        )

    return ChatResponse(
        id=chat.id,
        user_id=chat.user_id,
        title=chat.title,
        databases=[DatabaseSummary.model_validate(database) for database in chat.databases],
        last_message_at=chat.last_message_at,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        message_count=await message_repo.count_for_chat(chat.id),
        last_message=last_message,
    ).to_wire()


@router.get("")
async def list_chats(actor: ActorContext = Depends(require_user)):
    """List the user's chats, most recently active first."""
    async with get_session() as session:
        chats = await ChatRepository(session).list_for_user(actor.user_id)
        payload = [await describe_chat(session, chat) for chat in chats]

    return success_response({"chats": payload})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_chat(
    chat_in: ChatCreate,
    actor: ActorContext = Depends(require_user)
):
    """Start a chat over databases the user can access."""
    database_ids = list(dict.fromkeys(chat_in.database_ids))

    async with get_session() as session:
        databases = await DatabaseRepository(session).get_many(database_ids)
        if len(databases) != len(database_ids):
            raise NotFoundError("One or more databases not found")

        for database in databases:
            if not await can_access_database(session, database, actor):
                raise AuthorizationError("You do not have access to all selected databases")

        chat = await ChatRepository(session).create_chat(
            user_id=actor.user_id,
            databases=databases,
            title=(chat_in.title or "").strip() or None,
        )
        payload = await describe_chat(session, chat)

    logger.info(f"Chat {chat.id} created by {actor.user_id}")
    return success_response(
        {"chat": payload},
        message="Chat created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{chat_id}")
async def get_chat(
    chat_id: str = Path(..., description="Chat ID"),
    actor: ActorContext = Depends(require_user)
):
    async with get_session() as session:
        chat = await get_owned_chat(session, chat_id, actor)
        payload = await describe_chat(session, chat)

    return success_response({"chat": payload})


@router.put("/{chat_id}")
async def update_chat(
    chat_in: ChatUpdate,
    chat_id: str = Path(..., description="Chat ID"),
    actor: ActorContext = Depends(require_user)
):
    async with get_session() as session:
        await get_owned_chat(session, chat_id, actor)
        chat = await ChatRepository(session).update(id=chat_id, obj_in={"title": chat_in.title.strip()})
        payload = await describe_chat(session, chat)

    return success_response({"chat": payload}, message="Chat updated successfully")


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str = Path(..., description="Chat ID"),
    actor: ActorContext = Depends(require_user)
):
    """Delete a chat and its messages."""
    async with get_session() as session:
        await get_owned_chat(session, chat_id, actor)
        await ChatRepository(session).delete_chat(chat_id=chat_id)

    return success_response(None, message="Chat deleted successfully")


@router.get("/{chat_id}/messages")
async def list_messages(
    chat_id: str = Path(..., description="Chat ID"),
    actor: ActorContext = Depends(require_user)
):
    async with get_session() as session:
        await get_owned_chat(session, chat_id, actor)
        messages = await MessageRepository(session).list_for_chat(chat_id)
        payload = [MessageResponse.model_validate(message).to_wire() for message in messages]

    return success_response({"messages": payload})


def apology_for(error: str) -> str:
    return f"Sorry, I encountered an error while processing your request: {error}"


def sse_event(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(data, default=str)}\n\n"


async def store_reply(chat: Chat, message_id: str, text: str, values: Dict[str, Any]) -> Dict[str, Any]:
    """Save the assistant side of a message and touch the chat."""
    async with get_session() as session:
        message = await MessageRepository(session).record_reply(message_id=message_id, **values)

        chat_update: Dict[str, Any] = {"last_message_at": utc_now()}
        if chat.title == DEFAULT_CHAT_TITLE:
            chat_update["title"] = chat_title_from(text)
        await ChatRepository(session).update(id=chat.id, obj_in=chat_update)

        return MessageResponse.model_validate(message).to_wire()


async def relay_reply(
    query_engine: QueryEngineClient,
    chat: Chat,
    message_id: str,
    text: str,
    database_ids: List[str]
) -> AsyncIterator[str]:
    """
    Relay the engine's stream to the client and store the reply at the end.

    Each text chunk is forwarded as ``{"chunk": ...}``. The closing event
    carries ``is_complete``, ``messageId`` and ``sqlQuery``, plus ``error``
    when the engine failed.
    """
    chunks: List[str] = []
    values: Dict[str, Any] = {}
    error = None

    try:
        async for event in query_engine.stream_chat_completion(
            database_ids=database_ids,
            message=text,
            chat_id=chat.id,
        ):
            chunk = event.get("chunk")
            if isinstance(chunk, str) and chunk.strip():
                chunks.append(chunk)
                yield sse_event({"chunk": chunk})
            if event.get("is_complete"):
                values["sql_query"] = event.get("sql_query") or event.get("sqlQuery")
                values["file_path"] = event.get("file_path") or event.get("filePath")
    except DownstreamServiceError as e:
        logger.error(f"Query engine stream failed for chat {chat.id}: {e.message}")
        error = e.message

    if error:
        values = {"assistant_message": apology_for(error)}
    else:
        values["assistant_message"] = " ".join(chunks) or NO_RESPONSE

    message = await store_reply(chat, message_id, text, values)

    closing = {"is_complete": True, "messageId": message_id, "sqlQuery": message.get("sqlQuery")}
    if error:
        closing["error"] = error
    yield sse_event(closing)


@router.post("/{chat_id}/messages")
async def send_message(
    message_in: MessageCreate,
    chat_id: str = Path(..., description="Chat ID"),
    actor: ActorContext = Depends(require_user),
    query_engine: QueryEngineClient = Depends(get_query_engine)
):
    """
    Post a question to a chat and store the engine's answer.

    The user message is stored before the engine is called. If the engine
    fails, an apology is stored as the reply and the failure is returned in
    ``error`` alongside the message. With ``stream`` set the answer is
    relayed as server-sent events.
    """
    text = message_in.message.strip()

    async with get_session() as session:
        chat = await get_owned_chat(session, chat_id, actor)
        database_ids = [database.id for database in chat.databases]
        message = await MessageRepository(session).create(obj_in={
            "chat_id": chat_id,
            "user_message": text,
            "assistant_message": "",
            "message_metadata": {},
        })

    if message_in.stream:
        return StreamingResponse(
            relay_reply(query_engine, chat, message.id, text, database_ids),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    error = None
    try:
        reply = await query_engine.chat_completion(database_ids=database_ids, message=text, chat_id=chat_id)
        values = {
            "assistant_message": reply["message"],
            "sql_query": reply["sqlQuery"],
            "query_results": reply["queryResults"],
            "file_path": reply["filePath"],
        }
    except DownstreamServiceError as e:
        logger.error(f"Query engine failed for chat {chat_id}: {e.message}")
        error = e.message
        values = {"assistant_message": apology_for(error)}

    payload = {"message": await store_reply(chat, message.id, text, values)}
    if error:
        payload["error"] = error
    return success_response(payload)
