"""Discord cogs - gateway event listeners."""

from discord_room_player.infrastructure.discord.cogs.occupancy_cog import VoiceOccupancyCog

__all__ = [
    "VoiceOccupancyCog",
]
