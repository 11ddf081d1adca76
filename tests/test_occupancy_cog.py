"""
Unit Tests for VoiceOccupancyCog

Tests for:
- Listener counting
- Forwarding occupancy changes for the bot's channel
- Ignoring rooms without a session and unrelated channels
- Reporting the bot's own disconnects and moves
- Ignoring updates once the container is shut down
- Extension setup
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from discord_room_player.config.container import Container
from discord_room_player.config.settings import Settings
from discord_room_player.infrastructure.discord.cogs.occupancy_cog import (
    VoiceOccupancyCog,
    count_listeners,
    setup,
)

ROOM_ID = 1001
BOT_USER_ID = 4242


def make_member(member_id: int = 1, bot: bool = False) -> MagicMock:
    member = MagicMock()
    member.id = member_id
    member.bot = bot
    return member


def make_channel(channel_id: int, members=None) -> MagicMock:
    channel = MagicMock()
    channel.id = channel_id
    channel.members = members or []
    return channel


def make_state(channel=None) -> MagicMock:
    state = MagicMock()
    state.channel = channel
    return state


@pytest.fixture
def bot_channel():
    return make_channel(10, [make_member(1), make_member(BOT_USER_ID, bot=True)])


@pytest.fixture
def guild(bot_channel):
    guild = MagicMock()
    guild.id = ROOM_ID
    guild.voice_client.channel = bot_channel
    return guild


@pytest.fixture
def mock_bot():
    bot = MagicMock()
    bot.user.id = BOT_USER_ID
    return bot


@pytest.fixture
def container():
    container = MagicMock()
    container.is_shut_down = False
    container.session_registry.has_session.return_value = True
    container.session_registry.handle_occupancy_change = AsyncMock(return_value=False)
    container.audio_transport.notify_disconnected = AsyncMock()
    return container


@pytest.fixture
def cog(mock_bot, container):
    return VoiceOccupancyCog(mock_bot, container)


def member_in(guild, member_id: int = 1, bot: bool = False) -> MagicMock:
    member = make_member(member_id, bot)
    member.guild = guild
    return member


class TestCountListeners:
    """Unit tests for count_listeners."""

    def test_counts_humans_only(self):
        channel = make_channel(1, [make_member(1), make_member(2, bot=True), make_member(3)])
        assert count_listeners(channel) == 2

    def test_none_channel(self):
        assert count_listeners(None) == 0


class TestVoiceStateUpdate:
    """Unit tests for on_voice_state_update."""

    @pytest.mark.asyncio
    async def test_member_leaves_bot_channel(self, cog, container, guild, bot_channel):
        member = member_in(guild)

        await cog.on_voice_state_update(member, make_state(bot_channel), make_state(None))

        container.session_registry.handle_occupancy_change.assert_awaited_once_with(ROOM_ID, 1)

    @pytest.mark.asyncio
    async def test_member_joins_bot_channel(self, cog, container, guild, bot_channel):
        member = member_in(guild)

        await cog.on_voice_state_update(member, make_state(None), make_state(bot_channel))

        container.session_registry.handle_occupancy_change.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unrelated_channel_ignored(self, cog, container, guild):
        member = member_in(guild)

        await cog.on_voice_state_update(
            member, make_state(make_channel(20)), make_state(make_channel(30))
        )

        container.session_registry.handle_occupancy_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_room_without_session_ignored(self, cog, container, guild, bot_channel):
        container.session_registry.has_session.return_value = False

        await cog.on_voice_state_update(
            member_in(guild), make_state(bot_channel), make_state(None)
        )

        container.session_registry.handle_occupancy_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bot_without_voice_client_ignored(self, cog, container, guild, bot_channel):
        guild.voice_client = None

        await cog.on_voice_state_update(
            member_in(guild), make_state(bot_channel), make_state(None)
        )

        container.session_registry.handle_occupancy_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bot_disconnected_notifies_transport(self, cog, container, guild, bot_channel):
        member = member_in(guild, BOT_USER_ID, bot=True)

        await cog.on_voice_state_update(member, make_state(bot_channel), make_state(None))

        container.audio_transport.notify_disconnected.assert_awaited_once_with(ROOM_ID)
        container.session_registry.handle_occupancy_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bot_moved_recounts_new_channel(self, cog, container, guild, bot_channel):
        member = member_in(guild, BOT_USER_ID, bot=True)
        empty = make_channel(11, [make_member(BOT_USER_ID, bot=True)])

        await cog.on_voice_state_update(member, make_state(bot_channel), make_state(empty))

        container.session_registry.handle_occupancy_change.assert_awaited_once_with(ROOM_ID, 0)

    @pytest.mark.asyncio
    async def test_bot_state_change_in_same_channel_ignored(
        self, cog, container, guild, bot_channel
    ):
        member = member_in(guild, BOT_USER_ID, bot=True)

        await cog.on_voice_state_update(member, make_state(bot_channel), make_state(bot_channel))

        container.session_registry.handle_occupancy_change.assert_not_awaited()
        container.audio_transport.notify_disconnected.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_updates_after_container_shutdown_ignored(
        self, mock_bot, guild, bot_channel, resolver, transport
    ):
        container = Container(
            settings=Settings(_env_file=None), _track_resolver=resolver, _audio_transport=transport
        )
        await container.shutdown()
        cog = VoiceOccupancyCog(mock_bot, container)

        await cog.on_voice_state_update(
            member_in(guild), make_state(bot_channel), make_state(None)
        )
        await cog.on_voice_state_update(
            member_in(guild, BOT_USER_ID, bot=True), make_state(bot_channel), make_state(None)
        )

        assert container.is_shut_down is True


class TestSetup:
    """Unit tests for the extension entry point."""

    @pytest.mark.asyncio
    async def test_setup_adds_cog(self, container):
        bot = MagicMock()
        bot.container = container
        bot.add_cog = AsyncMock()

        await setup(bot)

        cog = bot.add_cog.await_args.args[0]
        assert isinstance(cog, VoiceOccupancyCog)

    @pytest.mark.asyncio
    async def test_setup_without_container(self):
        bot = MagicMock()
        bot.container = None

        with pytest.raises(RuntimeError, match="Container not found"):
            await setup(bot)
