# -*- coding: utf-8 -*-
"""JoinbellBot и запуск с переподключением"""

import asyncio
import logging
from typing import Optional

import discord
from discord.ext import commands

from .cog import RecruitCog
from .controller import RecruitmentController
from .gateway import DiscordGateway
from .scheduler import CleanupScheduler
from .settings import RecruitSettings

logger = logging.getLogger("joinbell")

# ─── Discord Intents ───────────────────────────────────────────────────────────
# Привилегированные интенты не нужны: читаем только свои сообщения
INTENTS = discord.Intents.default()
INTENTS.guilds = True
INTENTS.guild_reactions = True

MAX_RETRIES = 5


class JoinbellBot(commands.Bot):
    def __init__(self, settings: RecruitSettings):
        super().__init__(command_prefix=commands.when_mentioned, intents=INTENTS)
        self.settings = settings
        self.gateway = DiscordGateway(self, timeout=settings.platform_timeout)
        self.scheduler = CleanupScheduler(self.gateway)
        self.controller: Optional[RecruitmentController] = None

    async def setup_hook(self):
        """Вызывается при запуске бота"""
        self.controller = RecruitmentController(self.gateway, self.settings, scheduler=self.scheduler)
        await self.add_cog(RecruitCog(self, self.controller))
        logger.info("Бот настроен и готов к работе")

    async def on_ready(self):
        logger.info(f"✅ Бот {self.user} подключен к Discord!")
        logger.info(f"🌍 Сервера: {len(self.guilds)}")

        # Синхронизируем slash команды глобально
        try:
            synced = await self.tree.sync()
            logger.info(f"🔄 Синхронизировано {len(synced)} slash команд")
        except discord.HTTPException as e:
            logger.error(f"❌ Ошибка синхронизации команд: {e}")

    async def close(self):
        # Запланированные очистки живут только в памяти процесса
        await self.scheduler.close()
        await super().close()


async def start_bot_with_reconnect(settings: RecruitSettings):
    """Запускает бота с автоматическим переподключением при ошибках"""
    retry_count = 0

    while retry_count < MAX_RETRIES:
        bot = JoinbellBot(settings)
        try:
            logger.info(f"🚀 Попытка запуска бота #{retry_count + 1}")
            await bot.start(settings.token)
            return
        except discord.LoginFailure:
            logger.error("❌ КРИТИЧЕСКАЯ ОШИБКА: Неверный токен бота! Проверьте DISCORD_TOKEN")
            return
        except discord.HTTPException as e:
            logger.error(f"❌ Ошибка HTTP: {e}")
            if e.status == 429:
                logger.warning("⏳ Превышен лимит запросов, ждем...")
                await asyncio.sleep(60)
            retry_count += 1
        except (discord.ConnectionClosed, discord.GatewayNotFound, OSError) as e:
            logger.error(f"🔌 Соединение потеряно: {e}")
            retry_count += 1
        finally:
            if not bot.is_closed():
                await bot.close()

        if retry_count < MAX_RETRIES:
            wait_time = min(2 ** retry_count, 60)  # Экспоненциальная задержка, максимум 60 секунд
            logger.info(f"⏳ Ожидание {wait_time} секунд перед повторной попыткой...")
            await asyncio.sleep(wait_time)

    logger.error("❌ Превышено максимальное количество попыток подключения")
