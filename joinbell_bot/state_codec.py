# -*- coding: utf-8 -*-
"""
Хранение параметров набора прямо в тексте сообщения.

Никакой базы данных: бот пишет в сообщение блок ```toml с параметрами
и на каждое событие читает его заново. Блок никогда не правится частично,
только генерируется целиком через encode().
"""

from dataclasses import dataclass
import json
import logging
import tomllib
from typing import Optional

from .errors import StateInvalid, StateMalformed, StateNotFound

logger = logging.getLogger("joinbell.state_codec")

OPEN_MARKER = "```toml"
CLOSE_MARKER = "```"

# Порядок ключей в блоке фиксирован, чтобы encode() был детерминированным
FIELD_ORDER = (
    "game_title",
    "required_players",
    "mention_role",
    "notify_on_reaction",
    "auto_assign_role",
)
REQUIRED_FIELDS = ("game_title", "required_players")


@dataclass(frozen=True)
class RecruitmentState:
    """Параметры одного набора (имена полей совпадают с ключами блока)"""
    game_title: str
    required_players: int
    mention_role: Optional[int] = None
    notify_on_reaction: bool = False
    auto_assign_role: bool = False

    def __post_init__(self):
        if not self.game_title.strip():
            raise StateInvalid("game_title must not be empty")
        if self.required_players <= 0:
            raise StateInvalid(f"required_players must be positive, got {self.required_players}")
        if self.mention_role is not None and self.mention_role <= 0:
            raise StateInvalid(f"mention_role must be a role id, got {self.mention_role}")
        if self.auto_assign_role and self.mention_role is None:
            raise StateInvalid("auto_assign_role requires mention_role")


def _toml_string(value: str) -> str:
    # JSON-строка является валидной базовой строкой TOML. Обратные кавычки
    # экранируем, иначе название может закрыть блок раньше времени.
    return (
        json.dumps(value, ensure_ascii=False)
        .replace("`", "\\u0060")
        .replace("\x7f", "\\u007f")
    )


def _toml_bool(value: bool) -> str:
    return "true" if value else "false"


def encode(state: RecruitmentState) -> str:
    """Сериализовать состояние в блок ```toml ... ```"""
    lines = [
        f"game_title = {_toml_string(state.game_title)}",
        f"required_players = {state.required_players}",
    ]
    if state.mention_role is not None:
        lines.append(f"mention_role = {state.mention_role}")
    lines.append(f"notify_on_reaction = {_toml_bool(state.notify_on_reaction)}")
    lines.append(f"auto_assign_role = {_toml_bool(state.auto_assign_role)}")
    return OPEN_MARKER + "\n" + "\n".join(lines) + "\n" + CLOSE_MARKER


def contains_fragment(text: str) -> bool:
    """Быстрая проверка: есть ли в тексте открывающий маркер"""
    return OPEN_MARKER in (text or "")


def extract_fragment(text: str) -> str:
    """Вырезать содержимое первого блока ```toml"""
    if not text:
        raise StateNotFound("empty message")
    start = text.find(OPEN_MARKER)
    if start < 0:
        raise StateNotFound("toml block not found")
    rest = text[start + len(OPEN_MARKER):]
    end = rest.find(CLOSE_MARKER)
    if end < 0:
        raise StateNotFound("toml block is not closed")
    return rest[:end].strip()


def _is_int(value) -> bool:
    # bool в Python является подклассом int
    return isinstance(value, int) and not isinstance(value, bool)


def decode(text: str) -> RecruitmentState:
    """Прочитать состояние из текста сообщения.

    StateNotFound - блока нет, StateMalformed - блок не разбирается,
    StateInvalid - значения нарушают инварианты. Неизвестные ключи
    игнорируются, отсутствующие флаги получают значения по умолчанию.
    """
    fragment = extract_fragment(text)
    try:
        data = tomllib.loads(fragment)
    except tomllib.TOMLDecodeError as e:
        raise StateMalformed(f"toml parse error: {e}") from e

    missing = [key for key in REQUIRED_FIELDS if key not in data]
    if missing:
        raise StateMalformed(f"missing required keys: {', '.join(missing)}")

    game_title = data["game_title"]
    if not isinstance(game_title, str):
        raise StateMalformed("game_title must be a string")

    required_players = data["required_players"]
    if not _is_int(required_players):
        raise StateMalformed("required_players must be an integer")

    mention_role = data.get("mention_role")
    if mention_role is not None and not _is_int(mention_role):
        raise StateMalformed("mention_role must be an integer role id")

    flags = {}
    for key in ("notify_on_reaction", "auto_assign_role"):
        value = data.get(key, False)
        if not isinstance(value, bool):
            raise StateMalformed(f"{key} must be a boolean")
        flags[key] = value

    unknown = set(data) - set(FIELD_ORDER)
    if unknown:
        logger.debug(f"Игнорируем неизвестные ключи блока: {sorted(unknown)}")

    return RecruitmentState(
        game_title=game_title,
        required_players=required_players,
        mention_role=mention_role,
        **flags,
    )
