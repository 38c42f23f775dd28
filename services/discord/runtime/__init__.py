"""
Relay Runtime Package

Contained responsibilities:
- Runtime supervision (start / stop orchestration)
- Store, prompt snapshot and completion client ownership

IMPORTANT:
- Importing this package MUST NOT start the Discord client
- Importing this package MUST NOT create asyncio tasks
- All runtime execution is owned by RelaySupervisor
"""

from services.discord.runtime.supervisor import RelaySupervisor

__all__ = [
    "RelaySupervisor",
]
