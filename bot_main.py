#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Joinbell - Discord бот для набора участников в игру
Команда /recruit публикует сообщение набора, участники ставят реакции,
при наборе нужного количества бот объявляет старт.
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

from joinbell_bot.bot import start_bot_with_reconnect
from joinbell_bot.settings import RecruitSettings

# Настройка логирования
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler()]
)

logger = logging.getLogger("joinbell")


def main():
    """Главная функция запуска"""
    # Загрузка переменных окружения из .env файла
    load_dotenv()
    settings = RecruitSettings.load()
    if not settings.token:
        logger.error("❌ Ошибка: DISCORD_TOKEN не задан")
        sys.exit(1)

    logger.info("🤖 Запуск Discord бота набора...")
    try:
        asyncio.run(start_bot_with_reconnect(settings))
    except KeyboardInterrupt:
        logger.info("🛑 Бот остановлен пользователем")


if __name__ == "__main__":
    main()
