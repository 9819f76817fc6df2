# -*- coding: utf-8 -*-
"""
Все обращения к Discord API в одном месте.

Любая ошибка платформы (HTTPException, сетевые ошибки aiohttp, таймаут)
превращается в SideEffectError. Ретраев здесь нет: это забота discord.py.
"""

import asyncio
import logging
from typing import List, Optional

import aiohttp
import discord

from .errors import SideEffectError

logger = logging.getLogger("joinbell.gateway")

PLATFORM_ERRORS = (discord.HTTPException, aiohttp.ClientError, asyncio.TimeoutError)


def allowed_mentions(role_id: Optional[int] = None) -> discord.AllowedMentions:
    """Пингуются пользователи и только явно переданная роль.

    Название игры вводит пользователь, поэтому упоминания ролей из текста
    не должны срабатывать.
    """
    roles = [discord.Object(id=role_id)] if role_id is not None else False
    return discord.AllowedMentions(everyone=False, users=True, roles=roles)


class DiscordGateway:
    """Тонкая обертка над discord.Client для ядра набора"""

    def __init__(self, client: discord.Client, timeout: Optional[float] = None):
        self.client = client
        # None - без собственного таймаута, действует таймаут транспорта
        self.timeout = timeout

    @property
    def bot_user_id(self) -> Optional[int]:
        user = self.client.user
        return user.id if user else None

    async def _call(self, action: str, coro):
        try:
            if self.timeout:
                return await asyncio.wait_for(coro, self.timeout)
            return await coro
        except PLATFORM_ERRORS as e:
            logger.debug(f"[GATEWAY] {action}: {e!r}")
            raise SideEffectError(action, e) from e

    async def _channel(self, channel_id: int):
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self._call("fetch_channel", self.client.fetch_channel(channel_id))
        return channel

    async def _partial(self, channel_id: int, message_id: int) -> discord.PartialMessage:
        channel = await self._channel(channel_id)
        return channel.get_partial_message(message_id)

    # ── Сообщения ────────────────────────────────────────────────────────────
    async def fetch_message(self, channel_id: int, message_id: int) -> discord.Message:
        channel = await self._channel(channel_id)
        return await self._call("fetch_message", channel.fetch_message(message_id))

    async def send_message(self, channel_id: int, content: str, mention_role: Optional[int] = None) -> discord.Message:
        """mention_role - единственная роль, которую сообщение может пинговать"""
        channel = await self._channel(channel_id)
        return await self._call(
            "send_message",
            channel.send(content, allowed_mentions=allowed_mentions(mention_role)),
        )

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        message = await self._partial(channel_id, message_id)
        await self._call("delete_message", message.delete())

    # ── Реакции ──────────────────────────────────────────────────────────────
    async def add_reaction(self, channel_id: int, message_id: int, emoji: str) -> None:
        message = await self._partial(channel_id, message_id)
        await self._call("add_reaction", message.add_reaction(emoji))

    async def clear_reaction(self, channel_id: int, message_id: int, emoji: str) -> None:
        """Снять все реакции одного вида (нужно право Manage Messages)"""
        message = await self._partial(channel_id, message_id)
        await self._call("clear_reaction", message.clear_reaction(emoji))

    async def fetch_reactor_page(
        self,
        message: discord.Message,
        emoji: str,
        limit: int,
        after: Optional[int] = None,
    ) -> List[discord.abc.User]:
        """Одна страница пользователей, поставивших реакцию emoji"""
        reaction = next((r for r in message.reactions if str(r.emoji) == emoji), None)
        if reaction is None:
            return []

        async def _page():
            cursor = discord.Object(id=after) if after else None
            return [user async for user in reaction.users(limit=limit, after=cursor)]

        return await self._call("fetch_reactors", _page())

    # ── Роли ─────────────────────────────────────────────────────────────────
    async def _member(self, guild: discord.Guild, user_id: int, member=None) -> discord.Member:
        if member is not None:
            return member
        cached = guild.get_member(user_id)
        if cached is not None:
            return cached
        return await self._call("fetch_member", guild.fetch_member(user_id))

    async def grant_role(self, guild_id: int, user_id: int, role_id: int, member=None) -> bool:
        """Выдать роль. False - роль уже есть, ничего не делали"""
        guild = self.client.get_guild(guild_id)
        if guild is None:
            raise SideEffectError("grant_role: guild not available")
        role = guild.get_role(role_id)
        if role is None:
            raise SideEffectError("grant_role: role not found")
        member = await self._member(guild, user_id, member)
        if any(r.id == role_id for r in member.roles):
            return False
        await self._call("grant_role", member.add_roles(role, reason="Участие в наборе"))
        return True
