"""Машина состояний набора."""

import asyncio

import pytest

from joinbell_bot import messages
from joinbell_bot.classifier import ParticipationKind
from joinbell_bot.controller import Outcome, RecruitmentController
from joinbell_bot.scheduler import DeleteMessage, ResetReactions
from joinbell_bot.settings import RecruitSettings
from joinbell_bot.state_codec import RecruitmentState

from tests.fakes import (
    BOT_ID,
    CHANNEL_ID,
    NOTIFY,
    ROLE_ID,
    SILENT,
    FakeUser,
    make_event,
)

ALICE = FakeUser(1)
BOB = FakeUser(2)
CAROL = FakeUser(3)


def post_recruitment(gateway, settings, state):
    """Как /recruit: сообщение с блоком и базовые реакции бота"""
    guild_settings = settings.for_guild(None)
    message = gateway.post(messages.render_recruit_message(state, guild_settings))
    for emoji in guild_settings.baseline_emojis:
        message.react(FakeUser(BOT_ID, bot=True), emoji)
    return message


async def react(controller, message, user, emoji):
    message.react(user, emoji)
    return await controller.handle_reaction(make_event(user.id, emoji, message.id))


def scheduled_of(scheduler, action_type):
    return [(delay, action) for delay, action in scheduler.scheduled if isinstance(action, action_type)]


class TestRaidNightScenario:
    @pytest.mark.asyncio
    async def test_join_then_quorum(self, controller, gateway, settings, scheduler):
        state = RecruitmentState("Raid Night", 2, notify_on_reaction=True)
        message = post_recruitment(gateway, settings, state)

        outcome = await react(controller, message, ALICE, NOTIFY)
        assert outcome is Outcome.JOINED
        assert gateway.sent == [(CHANNEL_ID, messages.render_join(ALICE.id, state))]
        assert len(scheduled_of(scheduler, DeleteMessage)) == 1

        outcome = await react(controller, message, BOB, SILENT)
        assert outcome is Outcome.TRIGGERED
        # Тихая реакция не объявляется, следом сразу старт
        assert len(gateway.sent) == 2
        start = gateway.sent[1][1]
        assert "<@1>" in start and "<@2>" in start
        assert "Raid Night" in start
        assert len(scheduled_of(scheduler, DeleteMessage)) == 2

        assert (message.id, NOTIFY) in gateway.cleared
        assert (message.id, SILENT) in gateway.cleared
        assert set(message.reactions) == {NOTIFY}
        assert [u.id for u in message.reactions[NOTIFY]] == [BOT_ID]

    @pytest.mark.asyncio
    async def test_malformed_block_reports_once_and_skips_aggregation(self, controller, gateway, scheduler):
        message = gateway.post("набор\n```toml\nrequired_players = 2\n```")

        outcome = await react(controller, message, ALICE, NOTIFY)

        assert outcome is Outcome.CORRUPT
        assert gateway.sent == [(CHANNEL_ID, messages.render_config_error(ALICE.id))]
        assert gateway.page_calls == []
        assert scheduler.scheduled == []
        assert gateway.cleared == []


class TestQuorum:
    @pytest.mark.asyncio
    async def test_two_of_three_never_triggers(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 3))

        assert await react(controller, message, ALICE, NOTIFY) is Outcome.JOINED
        assert await react(controller, message, BOB, NOTIFY) is Outcome.JOINED
        # Повторная реакция того же человека другим видом не добавляет участника
        assert await react(controller, message, BOB, SILENT) is Outcome.JOINED

        assert gateway.sent == []
        assert gateway.cleared == []

    @pytest.mark.asyncio
    async def test_third_participant_triggers_exactly_once(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 3))
        await react(controller, message, ALICE, NOTIFY)
        await react(controller, message, BOB, SILENT)

        assert await react(controller, message, CAROL, NOTIFY) is Outcome.TRIGGERED

        starts = [content for _, content in gateway.sent if "Apex" in content]
        assert len(starts) == 1
        for kind_emoji in (NOTIFY, SILENT):
            assert all(u.id == BOT_ID for u in message.reactions.get(kind_emoji, []))

    @pytest.mark.asyncio
    async def test_stale_event_after_reset_does_not_retrigger(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 1))
        assert await react(controller, message, ALICE, NOTIFY) is Outcome.TRIGGERED

        # Событие пришло уже после сброса: реакций больше нет
        outcome = await controller.handle_reaction(make_event(ALICE.id, NOTIFY, message.id))
        assert outcome is Outcome.JOINED
        assert len(gateway.sent) == 1

    @pytest.mark.asyncio
    async def test_new_round_on_same_message(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 2))
        await react(controller, message, ALICE, NOTIFY)
        assert await react(controller, message, BOB, NOTIFY) is Outcome.TRIGGERED

        assert await react(controller, message, CAROL, NOTIFY) is Outcome.JOINED
        assert await react(controller, message, ALICE, SILENT) is Outcome.TRIGGERED
        assert len(gateway.sent) == 2

    @pytest.mark.asyncio
    async def test_concurrent_events_leave_baseline(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 2))
        message.react(ALICE, NOTIFY)
        message.react(BOB, SILENT)

        outcomes = await asyncio.gather(
            controller.handle_reaction(make_event(ALICE.id, NOTIFY, message.id)),
            controller.handle_reaction(make_event(BOB.id, SILENT, message.id)),
        )

        assert Outcome.TRIGGERED in outcomes
        assert set(message.reactions) == {NOTIFY}
        assert [u.id for u in message.reactions[NOTIFY]] == [BOT_ID]

    @pytest.mark.asyncio
    async def test_bots_do_not_count_towards_quorum(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 2))
        message.react(FakeUser(77, bot=True), NOTIFY)

        assert await react(controller, message, ALICE, NOTIFY) is Outcome.JOINED


class TestFiltering:
    @pytest.mark.asyncio
    async def test_foreign_message_is_ignored(self, controller, gateway, settings):
        state = RecruitmentState("Apex", 1)
        message = gateway.post(messages.render_recruit_message(state, settings.for_guild(None)), author=CAROL)

        assert await react(controller, message, ALICE, NOTIFY) is Outcome.IGNORED
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_bot_message_without_block_is_ignored(self, controller, gateway):
        message = gateway.post("🚀 <@1> начинают Apex!")
        assert await react(controller, message, ALICE, NOTIFY) is Outcome.IGNORED
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_unrelated_emoji_is_ignored_without_fetch(self, controller, gateway):
        gateway.fail.add("fetch_message")
        outcome = await controller.handle_reaction(make_event(ALICE.id, "🔥", 1))
        assert outcome is Outcome.IGNORED

    @pytest.mark.asyncio
    async def test_deleted_message_is_ignored(self, controller, gateway):
        outcome = await controller.handle_reaction(make_event(ALICE.id, NOTIFY, 424242))
        assert outcome is Outcome.IGNORED
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_zero_players_block_is_reported(self, controller, gateway):
        message = gateway.post("```toml\ngame_title = \"Apex\"\nrequired_players = 0\n```")
        assert await react(controller, message, ALICE, SILENT) is Outcome.CORRUPT
        assert gateway.sent == [(CHANNEL_ID, messages.render_config_error(ALICE.id))]


class TestNotifications:
    @pytest.mark.asyncio
    async def test_no_join_announcement_when_disabled(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 3))
        await react(controller, message, ALICE, NOTIFY)
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_start_mentions_role_and_is_scheduled_for_deletion(self, controller, gateway, settings, scheduler):
        state = RecruitmentState("Apex", 1, mention_role=ROLE_ID)
        message = post_recruitment(gateway, settings, state)

        await react(controller, message, ALICE, NOTIFY)

        assert gateway.sent[0][1].startswith(f"<@&{ROLE_ID}>\n")
        [(delay, action)] = scheduled_of(scheduler, DeleteMessage)
        assert delay == 3600
        assert action.message_id != message.id

    @pytest.mark.asyncio
    async def test_join_announcement_failure_does_not_stop_handler(self, controller, gateway, settings, scheduler):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 3, notify_on_reaction=True))
        gateway.fail.add("send_message")

        assert await react(controller, message, ALICE, NOTIFY) is Outcome.JOINED
        assert scheduler.scheduled == []

    @pytest.mark.asyncio
    async def test_failed_start_keeps_reactions(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 1))
        gateway.fail.add("send_message")

        assert await react(controller, message, ALICE, NOTIFY) is Outcome.FAILED
        assert gateway.cleared == []
        assert ALICE in message.reactions[NOTIFY]

    @pytest.mark.asyncio
    async def test_aggregation_failure_is_not_a_trigger(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 1))
        gateway.fail.add("fetch_reactors")

        assert await react(controller, message, ALICE, NOTIFY) is Outcome.FAILED
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_role_in_title_is_never_pinged(self, controller, gateway, settings):
        state = RecruitmentState("<@&123> Apex", 2, notify_on_reaction=True)
        message = post_recruitment(gateway, settings, state)

        await react(controller, message, ALICE, NOTIFY)
        await react(controller, message, BOB, NOTIFY)

        assert len(gateway.sent) == 3
        assert gateway.mention_roles == [None, None, None]

    @pytest.mark.asyncio
    async def test_start_may_ping_only_its_own_role(self, controller, gateway, settings):
        state = RecruitmentState("<@&123> Apex", 1, mention_role=ROLE_ID, notify_on_reaction=True)
        message = post_recruitment(gateway, settings, state)

        await react(controller, message, ALICE, NOTIFY)

        # объявление об участнике, затем старт
        assert gateway.mention_roles == [None, ROLE_ID]


class TestRoleAssignment:
    @pytest.mark.asyncio
    async def test_participant_receives_role(self, controller, gateway, settings):
        state = RecruitmentState("Apex", 3, mention_role=ROLE_ID, auto_assign_role=True)
        message = post_recruitment(gateway, settings, state)

        await react(controller, message, ALICE, SILENT)

        assert gateway.roles[ALICE.id] == {ROLE_ID}
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_grant_is_idempotent(self, controller, gateway):
        event = make_event(ALICE.id, NOTIFY, 1)

        assert await controller.assign_role(event, ROLE_ID) is True
        assert await controller.assign_role(event, ROLE_ID) is False

        assert gateway.roles[ALICE.id] == {ROLE_ID}
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_grant_failure_is_reported_and_handler_continues(self, controller, gateway, settings):
        state = RecruitmentState("Apex", 1, mention_role=ROLE_ID, auto_assign_role=True)
        message = post_recruitment(gateway, settings, state)
        gateway.fail.add("grant_role")

        outcome = await react(controller, message, ALICE, NOTIFY)

        assert outcome is Outcome.TRIGGERED
        assert gateway.sent[0][1] == messages.render_role_error(ALICE.id, ROLE_ID)
        assert messages.CONFIG_ERROR_MESSAGE not in gateway.sent[0][1]
        assert "Apex" in gateway.sent[1][1]

    @pytest.mark.asyncio
    async def test_role_not_assigned_without_flag(self, controller, gateway, settings):
        state = RecruitmentState("Apex", 3, mention_role=ROLE_ID)
        message = post_recruitment(gateway, settings, state)
        await react(controller, message, ALICE, NOTIFY)
        assert gateway.grant_calls == 0


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_failure_is_reported(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 1))
        gateway.fail.add("clear_reaction")

        assert await react(controller, message, ALICE, NOTIFY) is Outcome.TRIGGERED
        assert gateway.sent[-1][1] == messages.render_reset_error()

    @pytest.mark.asyncio
    async def test_failed_clear_does_not_stop_remaining_steps(self, controller, gateway, settings):
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 2))
        gateway.fail.add(("clear_reaction", NOTIFY))

        await react(controller, message, ALICE, NOTIFY)
        assert await react(controller, message, BOB, SILENT) is Outcome.TRIGGERED

        assert (message.id, SILENT) in gateway.cleared
        assert SILENT not in message.reactions
        assert (message.id, NOTIFY) in gateway.added
        assert gateway.sent[-1][1] == messages.render_reset_error()

    @pytest.mark.asyncio
    async def test_delayed_reset_goes_through_scheduler(self, gateway, scheduler):
        settings = RecruitSettings(overrides={"reset_delay": 3600})
        controller = RecruitmentController(gateway, settings, scheduler=scheduler)
        message = post_recruitment(gateway, settings, RecruitmentState("Apex", 1))

        assert await react(controller, message, ALICE, NOTIFY) is Outcome.TRIGGERED

        assert gateway.cleared == []
        [(delay, action)] = scheduled_of(scheduler, ResetReactions)
        assert delay == 3600
        assert action.message_id == message.id
        assert action.emojis == (NOTIFY, SILENT)
        assert action.baseline == (NOTIFY,)


def test_every_kind_is_aggregated():
    assert {kind.value for kind in ParticipationKind} == {"notifying", "silent"}
