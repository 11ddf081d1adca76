"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Discord (bot, voice transport, voice-state cog)
- Audio (yt-dlp resolver)
"""
