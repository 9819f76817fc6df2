# -*- coding: utf-8 -*-
"""
Отложенная очистка после набора.

Задачи живут только в памяти процесса: после перезапуска бота
запланированные удаления теряются. Ошибки очистки никогда не доходят
до пользователей, только в лог.
"""

import asyncio
from dataclasses import dataclass
import logging
from typing import Set, Tuple

from .errors import CleanupError, SideEffectError

logger = logging.getLogger("joinbell.scheduler")

DEFAULT_DELAY = 3600


@dataclass(frozen=True)
class DeleteMessage:
    """Удалить временное сообщение"""
    channel_id: int
    message_id: int

    async def run(self, gateway) -> None:
        await gateway.delete_message(self.channel_id, self.message_id)


@dataclass(frozen=True)
class ResetReactions:
    """Снять реакции участия и вернуть базовые"""
    channel_id: int
    message_id: int
    emojis: Tuple[str, ...]
    baseline: Tuple[str, ...]

    async def run(self, gateway) -> None:
        await reset_affordances(gateway, self.channel_id, self.message_id, self.emojis, self.baseline)


async def reset_affordances(gateway, channel_id: int, message_id: int, emojis, baseline) -> None:
    """Привести реакции сообщения к базовому набору.

    Операция идемпотентна: повторный вызов дает тот же результат,
    поэтому двойной старт из-за гонки событий ничего не ломает.
    Ошибка одного шага не отменяет остальные; если шаги падали,
    после всех попыток поднимается одна SideEffectError.
    """
    failures = []
    for emoji in emojis:
        try:
            await gateway.clear_reaction(channel_id, message_id, emoji)
        except SideEffectError as e:
            failures.append(e)
    for emoji in baseline:
        try:
            await gateway.add_reaction(channel_id, message_id, emoji)
        except SideEffectError as e:
            failures.append(e)
    if failures:
        steps = len(emojis) + len(baseline)
        raise SideEffectError(f"reset_reactions ({len(failures)}/{steps})", failures[0])


class CleanupScheduler:
    """Запускает действия очистки через заданную задержку"""

    def __init__(self, gateway, sleep=asyncio.sleep):
        self.gateway = gateway
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, delay: float, action) -> asyncio.Task:
        """Запланировать действие. Отменить отдельное действие нельзя"""
        task = asyncio.create_task(self._run(delay, action))
        # Держим ссылку, иначе задачу может собрать GC
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"[CLEANUP] Запланировано {action} через {delay} сек.")
        return task

    async def _execute(self, action) -> None:
        try:
            await action.run(self.gateway)
        except SideEffectError as e:
            raise CleanupError(f"{type(action).__name__} failed: {e}") from e

    async def _run(self, delay: float, action) -> None:
        await self._sleep(delay)
        try:
            await self._execute(action)
        except CleanupError as e:
            logger.warning(f"⚠️ Очистка не выполнена: {e}")
        except Exception:
            logger.exception(f"❌ Непредвиденная ошибка очистки {action}")
        else:
            logger.debug(f"[CLEANUP] Выполнено {action}")

    async def join(self) -> None:
        """Дождаться всех запланированных задач (для тестов и остановки)"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Отменить все ожидающие задачи при остановке бота"""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"🧹 Отменено отложенных очисток: {len(tasks)}")
