# -*- coding: utf-8 -*-
"""
Подсчет участников набора.

Считаем не Reaction.count, а реальных пользователей: одна и та же персона
с обеими реакциями учитывается один раз, боты (включая нас самих) не
учитываются вовсе.
"""

import logging
from typing import Iterable, Optional, Set

from .classifier import ParticipationKind, emoji_for_kind
from .settings import GuildSettings

logger = logging.getLogger("joinbell.aggregator")

PAGE_SIZE = 100  # максимум Discord API для списка реакций


class ParticipantAggregator:
    """Собирает множество участников по живым реакциям сообщения"""

    def __init__(self, gateway, page_size: int = PAGE_SIZE):
        self.gateway = gateway
        self.page_size = page_size

    async def reactors(self, message, emoji: str) -> Set[int]:
        """Все люди с реакцией emoji, постранично"""
        bot_user_id = self.gateway.bot_user_id
        result: Set[int] = set()
        after: Optional[int] = None
        while True:
            page = await self.gateway.fetch_reactor_page(message, emoji, self.page_size, after)
            if not page:
                break
            after = page[-1].id
            result.update(
                user.id for user in page
                if not user.bot and user.id != bot_user_id
            )
            if len(page) < self.page_size:
                break
        return result

    async def aggregate(
        self,
        message,
        kinds: Iterable[ParticipationKind],
        settings: GuildSettings,
    ) -> Set[int]:
        """Объединение участников по всем видам реакций"""
        participants: Set[int] = set()
        for kind in kinds:
            participants |= await self.reactors(message, emoji_for_kind(kind, settings))
        logger.debug(f"[AGGREGATE] message={message.id} participants={len(participants)}")
        return participants
