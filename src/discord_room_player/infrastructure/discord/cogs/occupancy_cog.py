"""Voice-state listener that feeds channel occupancy into the session registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from discord_room_player.domain.shared.messages import ErrorMessages, LogTemplates

if TYPE_CHECKING:
    from ....config.container import Container

logger = logging.getLogger(__name__)


def count_listeners(channel: discord.abc.Connectable | None) -> int:
    """Members in *channel* that are not bots."""
    members = getattr(channel, "members", None) or []
    return sum(1 for member in members if not member.bot)


class VoiceOccupancyCog(commands.Cog):
    def __init__(self, bot: commands.Bot, container: Container) -> None:
        self.bot = bot
        self.container = container

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        # Voice updates keep arriving while the bot closes.
        if self.container.is_shut_down:
            return

        guild = member.guild
        registry = self.container.session_registry
        if not registry.has_session(guild.id):
            return

        if self.bot.user is not None and member.id == self.bot.user.id:
            if after.channel is None:
                await self._notify_disconnected(guild.id)
                return
            if before.channel is not None and before.channel.id == after.channel.id:
                return
            # Moved by someone else; re-evaluate the new channel.
            await registry.handle_occupancy_change(guild.id, count_listeners(after.channel))
            return

        voice_client = guild.voice_client
        bot_channel = getattr(voice_client, "channel", None)
        if bot_channel is None:
            return

        touched = {getattr(before.channel, "id", None), getattr(after.channel, "id", None)}
        if bot_channel.id not in touched:
            return

        listeners = count_listeners(bot_channel)
        logger.debug("Room %s now has %d listeners", guild.id, listeners)
        await registry.handle_occupancy_change(guild.id, listeners)

    async def _notify_disconnected(self, room_id: int) -> None:
        notify = getattr(self.container.audio_transport, "notify_disconnected", None)
        if notify is None:
            return
        await notify(room_id)


async def setup(bot: commands.Bot) -> None:
    container = getattr(bot, "container", None)
    if container is None:
        raise RuntimeError(ErrorMessages.CONTAINER_NOT_FOUND)

    await bot.add_cog(VoiceOccupancyCog(bot, container))
    logger.info(LogTemplates.COG_LOADED, VoiceOccupancyCog.__name__)
