"""
Joinbell package: reaction-driven group recruitment for Discord.

This package exposes modules:
- state_codec: recruitment parameters embedded in the recruit message
- classifier: filtering of raw reaction events
- aggregator: participant set built from live reactions
- controller: the recruitment state machine
- scheduler: delayed best-effort cleanup
- cog: /recruit command and reaction listener
- bot: JoinbellBot and the reconnecting runner

Note: the process entry point lives in bot_main.py at the project root.
"""

__all__ = [
    "errors",
    "settings",
    "state_codec",
    "messages",
    "gateway",
    "classifier",
    "aggregator",
    "scheduler",
    "controller",
    "cog",
    "bot",
]
