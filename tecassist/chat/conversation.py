"""Conversation manager - per-user append-only turn history."""

import logging
from typing import Any

from tecassist.db.locks import KeyedLocks
from tecassist.db.repositories import ConversationStore
from tecassist.errors import ValidationError
from tecassist.models.chat import ConversationTurn, Role, UserProfile

logger = logging.getLogger(__name__)


class ConversationManager:
    """Appends and reads turns; appends for one user are serialized."""

    def __init__(self, store: ConversationStore, locks: KeyedLocks | None = None) -> None:
        self.store = store
        self.locks = locks or KeyedLocks()

    async def user_profile(self, user_id: str) -> UserProfile:
        """Raises NotFoundError for unknown users."""
        return await self.store.get_user(user_id)

    async def append(
        self,
        user_id: str,
        role: Role,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationTurn:
        """Persist one turn and return it once it is durable.

        Raises:
            NotFoundError: If the user does not exist
        """
        async with self.locks.hold(user_id):
            return await self.store.insert_turn(user_id, role, content, metadata)

    async def append_exchange(
        self,
        user_id: str,
        question: str,
        answer: str,
        answer_metadata: dict[str, Any] | None = None,
    ) -> tuple[ConversationTurn, ConversationTurn]:
        """Persist a question and its confirmed answer as adjacent turns.

        Both turns are written together or not at all. Provider identity
        and sources go in answer_metadata, never in the text.
        """
        async with self.locks.hold(user_id):
            user_turn, assistant_turn = await self.store.insert_turns(
                user_id,
                [(Role.user, question, None), (Role.assistant, answer, answer_metadata)],
            )
        return user_turn, assistant_turn

    async def recent_history(self, user_id: str, limit: int) -> list[ConversationTurn]:
        """Most recent `limit` turns, oldest first."""
        if limit < 0:
            raise ValidationError("history limit must not be negative", {"limit": limit})
        return await self.store.recent_turns(user_id, limit)

    async def clear_history(self, user_id: str) -> int:
        """Admin-only: delete every turn of a user. Not used by the chat flow."""
        async with self.locks.hold(user_id):
            removed = await self.store.clear_turns(user_id)
        logger.info(f"Cleared {removed} conversation turns for user {user_id}")
        return removed
