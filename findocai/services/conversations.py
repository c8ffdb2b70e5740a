# =============================================================================
# Conversation Manager - Persistent Multi-Turn Chats
# =============================================================================
#
# Conversations are created lazily by the first question, titled from that
# question, and grow by one (user, assistant) message pair per turn.
#
#   ConversationManager        - ownership checks, titles, timestamps
#   └── ConversationRepository (Protocol)
#       ├── SqlConversationRepository      - async SQLAlchemy
#       └── InMemoryConversationRepository - process-local (tests, dev)
#
# OWNERSHIP: every read and write is scoped to the caller's user_id. A
# conversation that exists but belongs to someone else is reported exactly
# like one that does not exist (NotFoundError).
#
# ORDERING: the manager stamps timestamps itself. Within a turn the
# assistant message is stamped one microsecond after the user message, so
# ordering by created_at is strict even when both are written in the same
# transaction.
# =============================================================================

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol

from sqlalchemy import and_, delete, func, select, update

from findocai.config import settings
from findocai.db.engine import async_session_factory
from findocai.db.models import ChatConversation, ChatMessage
from findocai.errors import InvalidArgumentError, NotFoundError
from findocai.services.context import Citation

logger = logging.getLogger(__name__)

FINANCIAL_TERMS = (
    "spending",
    "expense",
    "income",
    "payment",
    "invoice",
    "receipt",
    "transaction",
)
DEFAULT_TITLE = "New chat"
UNTITLED = "Untitled Chat"
MAX_TITLE_CHARS = 200


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ConversationRecord:
    id: str
    user_id: str
    title: str | None
    created_at: datetime
    updated_at: datetime


@dataclass
class MessageRecord:
    """
    One stored message.

    citations is None for user messages and a (possibly empty) list for
    assistant messages.
    """

    id: str
    conversation_id: str
    role: str  # "user" | "assistant"
    content: str
    created_at: datetime
    citations: list[Citation] | None = field(default=None)


@dataclass
class ConversationSummary:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    last_message_preview: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------


def generate_title(query: str) -> str:
    """
    Derive a conversation title from its first question.

    - The first financial term among the words → "Chat about {term}"
    - Otherwise the first four words, cut to 30 characters + "..."
    - Blank question → "New chat"

    Words are split on single spaces, so "invoice?" is not the term
    "invoice". Deterministic: same query, same title.
    """
    if not query.strip():
        return DEFAULT_TITLE

    for word in query.lower().split(" "):
        if word in FINANCIAL_TERMS:
            return f"Chat about {word}"

    title = " ".join(query.split(" ")[:4])
    return title[:30] + "..." if len(title) > 30 else title


# ---------------------------------------------------------------------------
# Repository Protocol
# ---------------------------------------------------------------------------


class ConversationRepository(Protocol):
    """Storage for conversations and their messages. All methods async."""

    async def get(self, conversation_id: str, user_id: str) -> ConversationRecord | None:
        ...

    async def create(self, record: ConversationRecord) -> ConversationRecord:
        ...

    async def add_messages(
        self,
        conversation_id: str,
        messages: list[MessageRecord],
        updated_at: datetime,
    ) -> None:
        ...

    async def list_messages(self, conversation_id: str) -> list[MessageRecord]:
        ...

    async def list_for_user(
        self, user_id: str,
    ) -> list[tuple[ConversationRecord, str | None]]:
        """Conversations, most recently updated first, with the latest message text."""
        ...

    async def set_title(self, conversation_id: str, title: str, updated_at: datetime) -> None:
        ...

    async def delete(self, conversation_id: str) -> None:
        ...


# ---------------------------------------------------------------------------
# Implementation 1: SQLAlchemy (async)
# ---------------------------------------------------------------------------


def _conversation_record(row: ChatConversation) -> ConversationRecord:
    return ConversationRecord(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _message_record(row: ChatMessage) -> MessageRecord:
    citations = None
    if row.role == "assistant":
        raw = (row.metadata_ or {}).get("citations") or []
        citations = [Citation.from_dict(c) for c in raw]
    return MessageRecord(
        id=row.id,
        conversation_id=row.conversation_id,
        role=row.role,
        content=row.content,
        created_at=row.created_at,
        citations=citations,
    )


class SqlConversationRepository:
    """
    Repository over chat_conversations / chat_messages.

    Each call opens and commits its own session from `session_factory`.
    """

    def __init__(self, session_factory: Callable = async_session_factory) -> None:
        self._session_factory = session_factory

    async def get(self, conversation_id: str, user_id: str) -> ConversationRecord | None:
        async with self._session_factory() as session:
            row = (await session.execute(
                select(ChatConversation).where(
                    ChatConversation.id == conversation_id,
                    ChatConversation.user_id == user_id,
                )
            )).scalar_one_or_none()
            return _conversation_record(row) if row else None

    async def create(self, record: ConversationRecord) -> ConversationRecord:
        async with self._session_factory() as session:
            session.add(ChatConversation(
                id=record.id,
                user_id=record.user_id,
                title=record.title,
                created_at=record.created_at,
                updated_at=record.updated_at,
            ))
            await session.commit()
        return record

    async def add_messages(
        self,
        conversation_id: str,
        messages: list[MessageRecord],
        updated_at: datetime,
    ) -> None:
        async with self._session_factory() as session:
            for message in messages:
                metadata = None
                if message.citations is not None:
                    metadata = {"citations": [c.to_dict() for c in message.citations]}
                session.add(ChatMessage(
                    id=message.id,
                    conversation_id=conversation_id,
                    role=message.role,
                    content=message.content,
                    metadata_=metadata,
                    created_at=message.created_at,
                ))
            await session.execute(
                update(ChatConversation)
                .where(ChatConversation.id == conversation_id)
                .values(updated_at=updated_at)
            )
            await session.commit()

    async def list_messages(self, conversation_id: str) -> list[MessageRecord]:
        async with self._session_factory() as session:
            rows = (await session.execute(
                select(ChatMessage)
                .where(ChatMessage.conversation_id == conversation_id)
                .order_by(ChatMessage.created_at)
            )).scalars().all()
            return [_message_record(r) for r in rows]

    async def list_for_user(
        self, user_id: str,
    ) -> list[tuple[ConversationRecord, str | None]]:
        # Latest message per conversation via ROW_NUMBER(), one round trip
        latest = (
            select(
                ChatMessage.conversation_id,
                ChatMessage.content,
                func.row_number().over(
                    partition_by=ChatMessage.conversation_id,
                    order_by=ChatMessage.created_at.desc(),
                ).label("rn"),
            )
            .subquery()
        )
        stmt = (
            select(ChatConversation, latest.c.content)
            .outerjoin(
                latest,
                and_(latest.c.conversation_id == ChatConversation.id, latest.c.rn == 1),
            )
            .where(ChatConversation.user_id == user_id)
            .order_by(ChatConversation.updated_at.desc())
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()
            return [(_conversation_record(conv), content) for conv, content in rows]

    async def set_title(self, conversation_id: str, title: str, updated_at: datetime) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(ChatConversation)
                .where(ChatConversation.id == conversation_id)
                .values(title=title, updated_at=updated_at)
            )
            await session.commit()

    async def delete(self, conversation_id: str) -> None:
        async with self._session_factory() as session:
            # Messages go with it (ON DELETE CASCADE)
            await session.execute(
                delete(ChatConversation).where(ChatConversation.id == conversation_id)
            )
            await session.commit()


# ---------------------------------------------------------------------------
# Implementation 2: In-memory
# ---------------------------------------------------------------------------


class InMemoryConversationRepository:
    def __init__(self) -> None:
        self._conversations: dict[str, ConversationRecord] = {}
        self._messages: dict[str, list[MessageRecord]] = {}

    async def get(self, conversation_id: str, user_id: str) -> ConversationRecord | None:
        record = self._conversations.get(conversation_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    async def create(self, record: ConversationRecord) -> ConversationRecord:
        self._conversations[record.id] = record
        self._messages[record.id] = []
        return record

    async def add_messages(
        self,
        conversation_id: str,
        messages: list[MessageRecord],
        updated_at: datetime,
    ) -> None:
        self._messages[conversation_id].extend(messages)
        self._conversations[conversation_id].updated_at = updated_at

    async def list_messages(self, conversation_id: str) -> list[MessageRecord]:
        return sorted(self._messages.get(conversation_id, []), key=lambda m: m.created_at)

    async def list_for_user(
        self, user_id: str,
    ) -> list[tuple[ConversationRecord, str | None]]:
        owned = [c for c in self._conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        result = []
        for conv in owned:
            messages = await self.list_messages(conv.id)
            result.append((conv, messages[-1].content if messages else None))
        return result

    async def set_title(self, conversation_id: str, title: str, updated_at: datetime) -> None:
        record = self._conversations[conversation_id]
        record.title = title
        record.updated_at = updated_at

    async def delete(self, conversation_id: str) -> None:
        self._conversations.pop(conversation_id, None)
        self._messages.pop(conversation_id, None)


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class ConversationManager:
    """Conversation lifecycle for one repository."""

    generate_title = staticmethod(generate_title)

    def __init__(
        self,
        repository: ConversationRepository,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = repository
        self._clock = clock

    async def _require(self, conversation_id: str, user_id: str) -> ConversationRecord:
        record = await self._repo.get(conversation_id, user_id)
        if record is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return record

    async def get_or_create(
        self,
        conversation_id: str | None,
        user_id: str,
        seed_query: str,
    ) -> ConversationRecord:
        """
        Reuse the conversation when it exists for this user, else start one.

        An unknown or foreign conversation_id silently starts a new
        conversation; nothing about the foreign one is revealed.
        """
        if conversation_id:
            existing = await self._repo.get(conversation_id, user_id)
            if existing is not None:
                return existing

        now = self._clock()
        record = await self._repo.create(ConversationRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=generate_title(seed_query),
            created_at=now,
            updated_at=now,
        ))
        logger.info("Created conversation %s for user_id=%s", record.id, user_id)
        return record

    async def append_turn(
        self,
        conversation_id: str,
        user_text: str,
        assistant_text: str,
        citations: list[Citation],
    ) -> tuple[MessageRecord, MessageRecord]:
        """Store the user message, then the assistant reply; touch updated_at."""
        user_at = self._clock()
        assistant_at = user_at + timedelta(microseconds=1)

        user_message = MessageRecord(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role="user",
            content=user_text,
            created_at=user_at,
        )
        assistant_message = MessageRecord(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role="assistant",
            content=assistant_text,
            created_at=assistant_at,
            citations=list(citations),
        )
        await self._repo.add_messages(
            conversation_id, [user_message, assistant_message], updated_at=assistant_at,
        )
        return user_message, assistant_message

    async def history(self, conversation_id: str, user_id: str) -> list[MessageRecord]:
        await self._require(conversation_id, user_id)
        return await self._repo.list_messages(conversation_id)

    async def list(self, user_id: str) -> list[ConversationSummary]:
        preview_chars = settings.preview_chars
        return [
            ConversationSummary(
                id=conv.id,
                title=conv.title or UNTITLED,
                created_at=conv.created_at,
                updated_at=conv.updated_at,
                last_message_preview=last[:preview_chars] if last is not None else None,
            )
            for conv, last in await self._repo.list_for_user(user_id)
        ]

    async def rename(self, conversation_id: str, user_id: str, title: str) -> ConversationRecord:
        title = title.strip()
        if not title:
            raise InvalidArgumentError("Title must not be blank")
        if len(title) > MAX_TITLE_CHARS:
            raise InvalidArgumentError(f"Title must be at most {MAX_TITLE_CHARS} characters")

        record = await self._require(conversation_id, user_id)
        now = self._clock()
        await self._repo.set_title(conversation_id, title, updated_at=now)
        record.title = title
        record.updated_at = now
        return record

    async def delete(self, conversation_id: str, user_id: str) -> None:
        await self._require(conversation_id, user_id)
        await self._repo.delete(conversation_id)
        logger.info("Deleted conversation %s for user_id=%s", conversation_id, user_id)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_memory_repository: InMemoryConversationRepository | None = None


def get_conversation_repository() -> SqlConversationRepository | InMemoryConversationRepository:
    """Repository for settings.storage_backend ("postgres" | "memory")."""
    global _memory_repository
    if settings.storage_backend == "memory":
        if _memory_repository is None:
            _memory_repository = InMemoryConversationRepository()
        return _memory_repository
    return SqlConversationRepository()
