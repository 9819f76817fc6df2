# -*- coding: utf-8 -*-
"""Команда /recruit и слушатель реакций"""

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from . import messages
from .classifier import ReactionEvent
from .controller import RecruitmentController
from .errors import SideEffectError, StateInvalid
from .state_codec import RecruitmentState

logger = logging.getLogger("joinbell.cog")


def validate_recruit_params(
    game_title: str,
    required_players: int,
    mention_role_id: Optional[int],
    notify_on_reaction: Optional[bool],
    auto_assign_role: Optional[bool],
) -> RecruitmentState | str:
    """RecruitmentState или текст ошибки для пользователя"""
    if not game_title or not game_title.strip():
        return messages.EMPTY_TITLE_ERROR
    if required_players < 1:
        return messages.REQUIRED_PLAYERS_ERROR
    if auto_assign_role and mention_role_id is None:
        return messages.AUTO_ASSIGN_WITHOUT_ROLE_ERROR
    try:
        return RecruitmentState(
            game_title=game_title,
            required_players=required_players,
            mention_role=mention_role_id,
            notify_on_reaction=bool(notify_on_reaction),
            auto_assign_role=bool(auto_assign_role),
        )
    except StateInvalid as e:
        logger.debug(f"[RECRUIT] Неверные параметры: {e}")
        return messages.COMMAND_FAILED


class RecruitCog(commands.Cog):
    def __init__(self, bot, controller: RecruitmentController):
        self.bot = bot
        self.controller = controller
        logger.info("Cog RecruitCog загружен")

    # ── /recruit ─────────────────────────────────────────────────────────────
    @app_commands.command(name="recruit", description="Набрать участников в игру")
    @app_commands.describe(
        game_title="Название игры",
        required_players="Сколько участников нужно для старта",
        mention_role="Роль, которую упомянуть при старте",
        notify_on_reaction="Сообщать о каждом новом участнике",
        auto_assign_role="Выдавать участникам роль mention_role",
    )
    @app_commands.guild_only()
    async def recruit(
        self,
        interaction: discord.Interaction,
        game_title: str,
        required_players: int,
        mention_role: Optional[discord.Role] = None,
        notify_on_reaction: Optional[bool] = None,
        auto_assign_role: Optional[bool] = None,
    ):
        if interaction.guild is None or interaction.channel is None:
            await interaction.response.send_message(messages.GUILD_ONLY_ERROR, ephemeral=True)
            return

        result = validate_recruit_params(
            game_title,
            required_players,
            mention_role.id if mention_role else None,
            notify_on_reaction,
            auto_assign_role,
        )
        if isinstance(result, str):
            await interaction.response.send_message(result, ephemeral=True)
            return

        settings = self.controller.settings.for_guild(interaction.guild.id)
        gateway = self.controller.gateway
        channel_id = interaction.channel.id

        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            message = await gateway.send_message(channel_id, messages.render_recruit_message(result, settings))
            for emoji in settings.baseline_emojis:
                await gateway.add_reaction(channel_id, message.id, emoji)
        except SideEffectError as e:
            logger.warning(f"⚠️ Не удалось опубликовать набор в канале {channel_id}: {e}")
            await interaction.followup.send(messages.COMMAND_FAILED, ephemeral=True)
            return

        logger.info(
            f"[RECRUIT] guild={interaction.guild.id} channel={channel_id} message={message.id} "
            f"game={result.game_title!r} required={result.required_players} by={interaction.user.id}"
        )
        await interaction.followup.send(messages.RECRUIT_POSTED, ephemeral=True)

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        """Обработчик ошибок команд"""
        logger.error(f"❌ Ошибка команды {interaction.command.name if interaction.command else '?'}: {error}")
        try:
            if interaction.response.is_done():
                await interaction.followup.send(messages.COMMAND_FAILED, ephemeral=True)
            else:
                await interaction.response.send_message(messages.COMMAND_FAILED, ephemeral=True)
        except discord.HTTPException as e:
            logger.warning(f"⚠️ Не удалось ответить на команду: {e}")

    # ── Реакции ──────────────────────────────────────────────────────────────
    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent):
        """Каждая реакция обрабатывается независимо, без блокировок"""
        event = ReactionEvent.from_payload(payload)
        try:
            await self.controller.handle_reaction(event)
        except Exception as e:
            logger.exception(f"❌ Ошибка обработки реакции {event.emoji} на {event.message_id}: {e}")
