from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from .bills import Chamber
from .controls import make_control_id

if TYPE_CHECKING:
    from .congressrp import CongressRP


class VoteView(discord.ui.View):
    """
    Yea / Nay / Abs / Info for one bill's vote in one chamber. The End button
    is only included on the copy posted in the approver's thread.
    Persistent, re-added on cog load.
    """

    def __init__(self, cog: CongressRP, ref: str, chamber: Chamber, *, include_end: bool = True):
        super().__init__(timeout=None)
        self.cog = cog
        self.ref = ref
        self.chamber = chamber
        self.yea_button.custom_id = make_control_id("yea", ref, chamber)
        self.nay_button.custom_id = make_control_id("nay", ref, chamber)
        self.abs_button.custom_id = make_control_id("abs", ref, chamber)
        self.info_button.custom_id = make_control_id("info", ref, chamber)
        self.end_button.custom_id = make_control_id("end", ref, chamber)
        if not include_end:
            self.remove_item(self.end_button)

    @discord.ui.button(label="Yea", style=discord.ButtonStyle.success)
    async def yea_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.cog.handle_control(interaction, button.custom_id)

    @discord.ui.button(label="Nay", style=discord.ButtonStyle.danger)
    async def nay_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.cog.handle_control(interaction, button.custom_id)

    @discord.ui.button(label="Abs", style=discord.ButtonStyle.secondary)
    async def abs_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.cog.handle_control(interaction, button.custom_id)

    @discord.ui.button(label="Info", style=discord.ButtonStyle.primary)
    async def info_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.cog.handle_control(interaction, button.custom_id)

    @discord.ui.button(label="End", style=discord.ButtonStyle.secondary)
    async def end_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.cog.handle_control(interaction, button.custom_id)


class OpenVoteView(discord.ui.View):
    def __init__(self, cog: CongressRP, ref: str, chamber: Chamber):
        super().__init__(timeout=None)
        self.cog = cog
        self.ref = ref
        self.open_button.custom_id = make_control_id("open", ref, chamber)

    @discord.ui.button(label="Open Vote", style=discord.ButtonStyle.primary)
    async def open_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.cog.handle_control(interaction, button.custom_id)
