from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from redbot.core.bot import Red


async def setup(bot: Red) -> None:
    from .congressrp import CongressRP

    cog = CongressRP(bot)
    await bot.add_cog(cog)
