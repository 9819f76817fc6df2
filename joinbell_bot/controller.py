# -*- coding: utf-8 -*-
"""
Машина состояний набора.

Open -> Triggered -> Open. Отдельного поля состояния нет: оно выводится
из живых реакций под сообщением. Старт сбрасывает реакции до базовых,
и этим же сбросом открывается следующий круг на том же сообщении.

Блокировок нет. События одного сообщения могут обрабатываться
параллельно и в любом порядке, поэтому участники всегда пересчитываются
целиком, а все изменяющие действия идемпотентны (выдача роли проверяет
наличие, сброс реакций приводит к одному и тому же итогу).
"""

from enum import Enum
import logging
from typing import Optional, Set

from . import messages
from .aggregator import ParticipantAggregator
from .classifier import EventClassifier, ParticipationKind, ReactionEvent
from .errors import DecodeError, SideEffectError, StateNotFound
from .scheduler import CleanupScheduler, DeleteMessage, ResetReactions
from .settings import GuildSettings, RecruitSettings
from .state_codec import RecruitmentState, decode

logger = logging.getLogger("joinbell.controller")


class Outcome(Enum):
    """Чем закончилась обработка события"""
    IGNORED = "ignored"      # не наше событие
    CORRUPT = "corrupt"      # блок настроек испорчен, отправлена ошибка
    JOINED = "joined"        # участник учтен, кворума нет
    TRIGGERED = "triggered"  # кворум, объявлен старт
    FAILED = "failed"        # Discord API не ответил, решение не принято


class RecruitmentController:
    """Обработка реакций под сообщениями набора"""

    def __init__(
        self,
        gateway,
        settings: RecruitSettings,
        scheduler: Optional[CleanupScheduler] = None,
        aggregator: Optional[ParticipantAggregator] = None,
        classifier: Optional[EventClassifier] = None,
    ):
        self.gateway = gateway
        self.settings = settings
        self.scheduler = scheduler or CleanupScheduler(gateway)
        self.aggregator = aggregator or ParticipantAggregator(gateway)
        self.classifier = classifier or EventClassifier(settings)

    async def handle_reaction(self, event: ReactionEvent) -> Outcome:
        bot_user_id = self.gateway.bot_user_id
        kind = self.classifier.classify(event, bot_user_id)
        if kind is None:
            return Outcome.IGNORED

        settings = self.settings.for_guild(event.guild_id)
        try:
            message = await self.gateway.fetch_message(event.channel_id, event.message_id)
        except SideEffectError as e:
            # Сообщение могли уже удалить
            logger.debug(f"[REACTION] Не удалось получить сообщение {event.message_id}: {e}")
            return Outcome.IGNORED

        if not self.classifier.owns(message, bot_user_id):
            return Outcome.IGNORED

        try:
            state = decode(message.content)
        except StateNotFound:
            return Outcome.IGNORED
        except DecodeError as e:
            logger.warning(f"⚠️ Испорченный блок настроек в сообщении {message.id}: {e}")
            await self._report(event.channel_id, messages.render_config_error(event.user_id))
            return Outcome.CORRUPT

        logger.info(
            f"[REACTION] message={message.id} user={event.user_id} kind={kind.value} "
            f"game={state.game_title!r}"
        )

        if state.notify_on_reaction and kind is ParticipationKind.NOTIFYING:
            await self._announce_join(event, state, settings)

        if state.auto_assign_role and state.mention_role is not None:
            await self.assign_role(event, state.mention_role)

        try:
            participants = await self.aggregator.aggregate(message, ParticipationKind, settings)
        except SideEffectError as e:
            logger.warning(f"⚠️ Не удалось получить участников сообщения {message.id}: {e}")
            return Outcome.FAILED

        if len(participants) < state.required_players:
            logger.info(f"[REACTION] {len(participants)}/{state.required_players} для {state.game_title!r}")
            return Outcome.JOINED

        return await self._trigger(event, state, participants, settings)

    # ── Побочные эффекты ──────────────────────────────────────────────────────
    async def _report(self, channel_id: int, content: str) -> None:
        """Видимое пользователю сообщение об ошибке"""
        try:
            await self.gateway.send_message(channel_id, content)
        except SideEffectError as e:
            logger.warning(f"⚠️ Не удалось отправить сообщение об ошибке в канал {channel_id}: {e}")

    async def _post_ephemeral(
        self,
        channel_id: int,
        content: str,
        settings: GuildSettings,
        mention_role: Optional[int] = None,
    ):
        """Отправить сообщение и запланировать его удаление"""
        sent = await self.gateway.send_message(channel_id, content, mention_role=mention_role)
        self.scheduler.schedule(settings.cleanup_delay, DeleteMessage(channel_id, sent.id))
        return sent

    async def _announce_join(self, event: ReactionEvent, state: RecruitmentState, settings: GuildSettings) -> None:
        try:
            await self._post_ephemeral(event.channel_id, messages.render_join(event.user_id, state), settings)
        except SideEffectError as e:
            logger.warning(f"⚠️ Не удалось объявить участника {event.user_id}: {e}")

    async def assign_role(self, event: ReactionEvent, role_id: int) -> bool:
        """Выдать роль участнику. Повторный вызов ничего не меняет"""
        try:
            granted = await self.gateway.grant_role(event.guild_id, event.user_id, role_id, member=event.member)
        except SideEffectError as e:
            logger.warning(f"⚠️ Не удалось выдать роль {role_id} пользователю {event.user_id}: {e}")
            await self._report(event.channel_id, messages.render_role_error(event.user_id, role_id))
            return False
        if granted:
            logger.info(f"[ROLE] Выдана роль {role_id} пользователю {event.user_id}")
        return granted

    async def _trigger(
        self,
        event: ReactionEvent,
        state: RecruitmentState,
        participants: Set[int],
        settings: GuildSettings,
    ) -> Outcome:
        """Переход Open -> Triggered: объявление и сброс реакций"""
        try:
            await self._post_ephemeral(
                event.channel_id,
                messages.render_start(state, participants),
                settings,
                mention_role=state.mention_role,
            )
        except SideEffectError as e:
            # Реакции не трогаем: следующее событие попробует снова
            logger.warning(f"⚠️ Не удалось объявить старт {state.game_title!r}: {e}")
            return Outcome.FAILED

        logger.info(f"🚀 Старт {state.game_title!r}: {len(participants)} участников (message={event.message_id})")

        reset = ResetReactions(
            channel_id=event.channel_id,
            message_id=event.message_id,
            emojis=settings.participation_emojis,
            baseline=settings.baseline_emojis,
        )
        if settings.reset_delay > 0:
            self.scheduler.schedule(settings.reset_delay, reset)
            return Outcome.TRIGGERED

        try:
            await reset.run(self.gateway)
        except SideEffectError as e:
            logger.warning(f"⚠️ Не удалось сбросить реакции сообщения {event.message_id}: {e}")
            await self._report(event.channel_id, messages.render_reset_error())
        return Outcome.TRIGGERED
