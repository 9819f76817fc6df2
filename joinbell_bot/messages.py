# -*- coding: utf-8 -*-
"""Тексты сообщений бота набора"""

from typing import Iterable, Optional

from discord.utils import escape_markdown

from .settings import GuildSettings
from .state_codec import RecruitmentState, encode

CONFIG_ERROR_MESSAGE = "❌ Не удалось прочитать настройки набора. Создайте сообщение набора заново."
REQUIRED_PLAYERS_ERROR = "❌ Количество участников должно быть не меньше 1."
EMPTY_TITLE_ERROR = "❌ Укажите название игры."
AUTO_ASSIGN_WITHOUT_ROLE_ERROR = "❌ Для автоматической выдачи роли укажите mention_role."
GUILD_ONLY_ERROR = "❌ Команда доступна только на сервере."
RECRUIT_POSTED = "✅ Сообщение набора опубликовано"
COMMAND_FAILED = "❌ Произошла ошибка при выполнении команды"


def user_mention(user_id: int) -> str:
    return f"<@{user_id}>"


def role_mention(role_id: int) -> str:
    return f"<@&{role_id}>"


def render_recruit_message(state: RecruitmentState, settings: GuildSettings) -> str:
    """Текст сообщения набора вместе с блоком настроек"""
    lines = [
        f"Поставьте {settings.notify_emoji} под этим сообщением, чтобы присоединиться к **{escape_markdown(state.game_title)}**",
        f"{settings.silent_emoji} - присоединиться без уведомления",
        f"Когда наберётся {state.required_players} чел., придёт уведомление о старте",
    ]
    if state.auto_assign_role and state.mention_role is not None:
        lines.append(f"Участники автоматически получат роль {role_mention(state.mention_role)}")
    return "\n".join(lines) + "\n" + encode(state)


def render_join(user_id: int, state: RecruitmentState) -> str:
    return f"{user_mention(user_id)} присоединяется к {escape_markdown(state.game_title)}"


def render_start(state: RecruitmentState, participants: Iterable[int]) -> str:
    """Объявление о старте: роль (если есть) и все участники"""
    mentions = " ".join(user_mention(uid) for uid in sorted(participants))
    body = f"🚀 {mentions} начинают {escape_markdown(state.game_title)}!"
    if state.mention_role is not None:
        return f"{role_mention(state.mention_role)}\n{body}"
    return body


def render_config_error(user_id: Optional[int]) -> str:
    if user_id is None:
        return CONFIG_ERROR_MESSAGE
    return f"{user_mention(user_id)} {CONFIG_ERROR_MESSAGE}"


def render_role_error(user_id: int, role_id: int) -> str:
    return (
        f"⚠️ Не удалось выдать роль {role_mention(role_id)} участнику {user_mention(user_id)}. "
        "Проверьте права бота."
    )


def render_reset_error() -> str:
    return (
        "⚠️ Не удалось сбросить реакции под сообщением набора. "
        "Боту нужно право «Управлять сообщениями»."
    )
