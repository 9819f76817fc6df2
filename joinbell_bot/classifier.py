# -*- coding: utf-8 -*-
"""
Фильтрация событий добавления реакции.

Пропускаем дальше только реакции участия под сообщениями самого бота.
Всё остальное "не наше" и молча отбрасывается.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Optional

import discord

from .settings import GuildSettings, RecruitSettings
from .state_codec import contains_fragment

logger = logging.getLogger("joinbell.classifier")


class ParticipationKind(Enum):
    """Виды участия"""
    NOTIFYING = "notifying"  # с объявлением о присоединении
    SILENT = "silent"        # без объявления


@dataclass(frozen=True)
class ReactionEvent:
    """Событие добавления реакции, не зависящее от объектов discord.py"""
    user_id: int
    emoji: str
    message_id: int
    channel_id: int
    guild_id: Optional[int] = None
    member: Optional[Any] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: discord.RawReactionActionEvent) -> "ReactionEvent":
        return cls(
            user_id=payload.user_id,
            emoji=str(payload.emoji),
            message_id=payload.message_id,
            channel_id=payload.channel_id,
            guild_id=payload.guild_id,
            member=payload.member,
        )


def kind_for_emoji(emoji: str, settings: GuildSettings) -> Optional[ParticipationKind]:
    if emoji == settings.notify_emoji:
        return ParticipationKind.NOTIFYING
    if emoji == settings.silent_emoji:
        return ParticipationKind.SILENT
    return None


def emoji_for_kind(kind: ParticipationKind, settings: GuildSettings) -> str:
    if kind is ParticipationKind.NOTIFYING:
        return settings.notify_emoji
    return settings.silent_emoji


class EventClassifier:
    """Решает, относится ли событие к набору"""

    def __init__(self, settings: RecruitSettings):
        self.settings = settings

    def classify(self, event: ReactionEvent, bot_user_id: Optional[int]) -> Optional[ParticipationKind]:
        """Вид участия или None, если событие нас не касается"""
        if event.guild_id is None:
            return None
        kind = kind_for_emoji(event.emoji, self.settings.for_guild(event.guild_id))
        if kind is None:
            return None
        # Свои реакции (базовые после сброса) не обрабатываем
        if bot_user_id is not None and event.user_id == bot_user_id:
            return None
        return kind

    @staticmethod
    def owns(message, bot_user_id: Optional[int]) -> bool:
        """Сообщение написано ботом и содержит блок настроек"""
        if bot_user_id is None or message.author.id != bot_user_id:
            return False
        return contains_fragment(message.content)
