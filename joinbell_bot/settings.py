# -*- coding: utf-8 -*-
"""
Настройки бота набора.

Источники по возрастанию приоритета: DEFAULT_SETTINGS, JSON-файл
(recruit_settings.json), переменные окружения (.env загружается в bot_main).
В JSON-файле можно переопределить значения для отдельной гильдии:
{"defaults": {...}, "guilds": {"<guild_id>": {...}}}
"""

from dataclasses import dataclass
import json
import logging
import os
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger("joinbell.settings")

PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_SETTINGS_FILE = os.path.join(PROJECT_DIR, "recruit_settings.json")

# Значения по умолчанию для каждой гильдии
DEFAULT_SETTINGS = {
    "notify_emoji": "✋",          # участие с уведомлением
    "silent_emoji": "👀",          # участие без уведомления
    "baseline_emojis": None,       # что бот ставит после сброса, None - только notify_emoji
    "cleanup_delay": 3600,         # через сколько секунд удалять временные сообщения
    "reset_delay": 0,              # 0 - сбрасывать реакции сразу после старта
}


@dataclass(frozen=True)
class GuildSettings:
    """Итоговые настройки для одной гильдии"""
    notify_emoji: str
    silent_emoji: str
    baseline_emojis: Tuple[str, ...]
    cleanup_delay: float
    reset_delay: float

    @property
    def participation_emojis(self) -> Tuple[str, ...]:
        return (self.notify_emoji, self.silent_emoji)


def _deep_merge_dicts(base: dict, incoming: dict) -> dict:
    """Глубокое слияние словарей. Значения из incoming имеют приоритет."""
    result = base.copy()
    for key, value in incoming.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def _env_seconds(env: Mapping[str, str], name: str) -> Optional[float]:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"⚠️ {name}={raw!r} не число, значение проигнорировано")
        return None
    if value < 0:
        logger.warning(f"⚠️ {name}={raw!r} отрицательное, значение проигнорировано")
        return None
    return value


def _build_guild_settings(data: Dict[str, Any]) -> GuildSettings:
    baseline = data.get("baseline_emojis") or [data["notify_emoji"]]
    if isinstance(baseline, str):
        baseline = [baseline]
    return GuildSettings(
        notify_emoji=str(data["notify_emoji"]),
        silent_emoji=str(data["silent_emoji"]),
        baseline_emojis=tuple(str(e) for e in baseline),
        cleanup_delay=float(data["cleanup_delay"]),
        reset_delay=float(data["reset_delay"]),
    )


class RecruitSettings:
    """Класс для управления настройками набора"""

    def __init__(
        self,
        overrides: Optional[Dict[str, Any]] = None,
        guilds: Optional[Dict[str, Dict[str, Any]]] = None,
        platform_timeout: Optional[float] = None,
        token: Optional[str] = None,
    ):
        self.defaults = _deep_merge_dicts(DEFAULT_SETTINGS, overrides or {})
        self.guilds = {str(k): v for k, v in (guilds or {}).items()}
        # None - таймаут транспорта discord.py по умолчанию
        self.platform_timeout = platform_timeout
        self.token = token
        self._default_guild = _build_guild_settings(self.defaults)

    @classmethod
    def load(cls, env: Optional[Mapping[str, str]] = None) -> "RecruitSettings":
        """Собрать настройки из JSON-файла и переменных окружения"""
        env = os.environ if env is None else env
        path = env.get("RECRUIT_SETTINGS_FILE") or DEFAULT_SETTINGS_FILE
        file_data = cls._load_file(path)

        overrides = dict(file_data.get("defaults", {}))
        cleanup_delay = _env_seconds(env, "RECRUIT_CLEANUP_DELAY")
        if cleanup_delay is not None:
            overrides["cleanup_delay"] = cleanup_delay
        reset_delay = _env_seconds(env, "RECRUIT_RESET_DELAY")
        if reset_delay is not None:
            overrides["reset_delay"] = reset_delay

        return cls(
            overrides=overrides,
            guilds=file_data.get("guilds", {}),
            platform_timeout=_env_seconds(env, "RECRUIT_PLATFORM_TIMEOUT") or None,
            token=env.get("DISCORD_TOKEN"),
        )

    @staticmethod
    def _load_file(path: str) -> Dict[str, Any]:
        """Загрузить настройки из файла (файла может и не быть)"""
        if not os.path.exists(path):
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"❌ Ошибка загрузки настроек {path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"❌ {path}: ожидался JSON-объект")
            return {}
        logger.info(f"✅ Настройки загружены из {path}")
        return data

    def for_guild(self, guild_id: Optional[int]) -> GuildSettings:
        """Настройки гильдии с учетом её переопределений"""
        if guild_id is None:
            return self._default_guild
        guild_overrides = self.guilds.get(str(guild_id))
        if not guild_overrides:
            return self._default_guild
        return _build_guild_settings(_deep_merge_dicts(self.defaults, guild_overrides))
