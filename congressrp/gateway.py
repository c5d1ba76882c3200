from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import discord
import humanize

from .bills import Bill, Chamber, Tally
from .constants import COLOR_PENDING
from .tally import describe_tally
from .views import OpenVoteView, VoteView
from .workflow import APPROVER_ROLE, REASON_TIME, CongressError, Notifier, Workflow

if TYPE_CHECKING:
    from .congressrp import CongressRP

UTC = timezone.utc

log = logging.getLogger("red.congressrp-cogs.CongressRP.gateway")

VOTING_CHANNEL = {Chamber.HOUSE: "house_voting", Chamber.SENATE: "senate_voting"}
PASSED_CHANNEL = {Chamber.HOUSE: "passed_house", Chamber.SENATE: "passed_senate"}
APPROVER_THREAD = {Chamber.HOUSE: "speaker_thread", Chamber.SENATE: "majority_leader_thread"}

ROLE_PINGS = discord.AllowedMentions(roles=True, users=False, everyone=False)


def _clip(text: str, limit: int) -> str:
    text = text or ""
    return text if len(text) <= limit else text[: limit - 1] + "…"


def create_bill_embed(bill: Bill, *, color: int | None = None) -> discord.Embed:
    cosponsors = ", ".join(f"<@{c}>" for c in bill.cosponsors) or "None"
    link = f"[Jump]({bill.message_link})" if bill.message_link.startswith("http") else bill.message_link
    e = discord.Embed(
        title=_clip(f"{bill.category.value.upper()} - {bill.title}", 256),
        color=bill.color if color is None else color,
    )
    e.add_field(name="Reference", value=bill.ref, inline=True)
    e.add_field(name="Proposed By", value=f"<@{bill.proposer_id}>", inline=True)
    e.add_field(name="Co-Sponsors", value=_clip(cosponsors, 1024), inline=False)
    e.add_field(name="Status", value=bill.status_text, inline=True)
    e.add_field(name="Chamber", value=bill.chamber.value, inline=True)
    e.add_field(name="Session", value=str(bill.session), inline=True)
    e.add_field(name="Content", value=_clip(bill.content, 1024) or "No content", inline=False)
    e.add_field(name="Original Message", value=link, inline=False)
    return e


# these post to channels before the workflow returns
SLOW_ACTIONS = {"end", "open"}


async def send_reply(interaction: discord.Interaction, content: str | None = None, *, ephemeral: bool = True, **kwargs):
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=ephemeral, **kwargs)
    else:
        await interaction.response.send_message(content, ephemeral=ephemeral, **kwargs)


async def answer_control(
    interaction: discord.Interaction,
    workflow: Workflow,
    action: str,
    ref: str,
    voter_roles,
    chamber: Chamber | None = None,
) -> None:
    if action in SLOW_ACTIONS:
        await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        text = await workflow.apply_control(action, ref, interaction.user.id, voter_roles, chamber)
    except CongressError as e:
        text = e.message
    await send_reply(interaction, text)


class DiscordNotifier(Notifier):
    def __init__(self, cog: CongressRP):
        self.cog = cog
        self.bot = cog.bot

    async def _channel(self, key: str):
        channel_id = (await self.cog.config.channels()).get(key) or 0
        if not channel_id:
            log.warning("channel %r is not configured; skipping message", key)
            return None
        ch = self.bot.get_channel(channel_id)
        if ch is None:
            ch = await self.bot.fetch_channel(channel_id)
        return ch

    async def _role_mention(self, key: str) -> str:
        role_id = (await self.cog.config.roles()).get(key) or 0
        return f"<@&{role_id}>" if role_id else ""

    async def notify_submission(self, bill: Bill) -> None:
        ch = await self._channel(APPROVER_THREAD[bill.chamber])
        if not ch:
            return
        content = (
            f"📢 New {bill.category.value} - **{bill.ref}**\n"
            f"Submitted by <@{bill.proposer_id}>\n"
            f"Session: {bill.session}\n"
            f"Content:\n{bill.content}"
        )
        view = OpenVoteView(self.cog, bill.ref, bill.chamber)
        self.bot.add_view(view)
        await ch.send(content=_clip(content, 2000), embed=create_bill_embed(bill), view=view)

    async def notify_voting_opened(self, bill: Bill) -> None:
        chamber = bill.current_chamber
        embed = create_bill_embed(bill)
        rnd = bill.current_round
        if rnd and rnd.expires_at:
            left = rnd.expires_at - datetime.now(UTC)
            embed.set_footer(text=f"Closes in {humanize.naturaldelta(left)}")

        ch = await self._channel(VOTING_CHANNEL[chamber])
        if ch:
            mention = await self._role_mention(APPROVER_ROLE[chamber])
            view = VoteView(self.cog, bill.ref, chamber, include_end=False)
            self.bot.add_view(view)
            await ch.send(
                content=" ".join(p for p in ("🗳️", mention, f"Voting is open on **{bill.ref}** in the {chamber.value}.") if p),
                embed=embed,
                view=view,
                allowed_mentions=ROLE_PINGS,
            )

        # End only lives in the approver's thread
        thread = await self._channel(APPROVER_THREAD[chamber])
        if thread:
            view = VoteView(self.cog, bill.ref, chamber)
            self.bot.add_view(view)
            await thread.send(
                content=f"🗳️ Voting is open on **{bill.ref}**. Use End to close it early.",
                embed=embed,
                view=view,
            )

    async def notify_outcome(self, bill: Bill, result: Tally, reason: str) -> None:
        ch = await self._channel(VOTING_CHANNEL[bill.current_chamber])
        if not ch:
            return
        why = "Time expired" if reason == REASON_TIME else "Approver ended it"
        embed = create_bill_embed(bill)
        embed.set_footer(text=f"Voting ended: {why} · {describe_tally(result)}")
        await ch.send(embed=embed)

    async def notify_chamber_passed(self, bill: Bill, chamber: Chamber) -> None:
        ch = await self._channel(PASSED_CHANNEL[chamber])
        if not ch:
            return
        await ch.send(content=f"✅ **{bill.ref}** - {bill.title} passed the {chamber.value}.", embed=create_bill_embed(bill))

    async def notify_handoff(self, bill: Bill, from_chamber: Chamber) -> None:
        ch = await self._channel(APPROVER_THREAD[from_chamber.other])
        if not ch:
            return
        await ch.send(
            content=f"📢 Passed in {from_chamber.value}, now before the {from_chamber.other.value}",
            embed=create_bill_embed(bill, color=COLOR_PENDING),
        )

    async def notify_enactment(self, bill: Bill) -> None:
        ch = await self._channel("passed_laws")
        if not ch:
            return
        mention = await self._role_mention("president")
        await ch.send(
            content=f"📜 {bill.title} ({bill.ref}) has passed both chambers ✅ {mention}".rstrip(),
            embed=create_bill_embed(bill),
            allowed_mentions=ROLE_PINGS,
        )
