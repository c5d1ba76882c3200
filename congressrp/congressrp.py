from __future__ import annotations

import logging
from datetime import timedelta

import discord
from discord import app_commands
from discord.ext import tasks
from redbot.core import Config, commands
from redbot.core.bot import Red
from redbot.core.data_manager import cog_data_path

from .bills import BillState, BillStore, Category, Chamber
from .constants import (
    COLOR_HELP,
    DEFAULT_CHANNELS,
    DEFAULT_ROLES,
    DEFAULT_VOTE_HOURS,
    HELP_TEXT,
)
from .controls import parse_control_id
from .gateway import DiscordNotifier, answer_control, create_bill_embed, send_reply
from .tally import describe_tally
from .views import OpenVoteView, VoteView
from .workflow import CongressError, Workflow, chamber_members_only

log = logging.getLogger("red.congressrp-cogs.CongressRP")

CHAMBER_CHOICES = [
    app_commands.Choice(name="House", value="House"),
    app_commands.Choice(name="Senate", value="Senate"),
]


def _bill_lines(bills) -> str:
    lines = [f"**{b.ref}** - {b.title} · {b.status_text}" for b in bills]
    text = "\n".join(lines) or "None"
    return text if len(text) <= 4000 else text[:3999] + "…"


class CongressRP(commands.Cog):
    """
    Congress role-play.

    Members submit bills, the Speaker or Majority Leader opens the floor
    vote, and bills that need both chambers are handed to the other
    chamber automatically before being announced as law.
    """

    def __init__(self, bot: Red) -> None:
        super().__init__()
        self.bot = bot
        self.config = Config.get_conf(self, identifier=1448606450573381742, force_registration=True)
        self.config.register_global(
            roles=DEFAULT_ROLES,
            channels=DEFAULT_CHANNELS,
            vote_hours=DEFAULT_VOTE_HOURS,
            restrict_ballots=False,
        )
        self.store = BillStore.load(cog_data_path(self) / "bills.json")
        self.notifier = DiscordNotifier(self)
        self.workflow = Workflow(self.store, self.notifier)

    async def cog_load(self) -> None:
        await self._apply_settings()
        # buttons on old messages keep working after a restart
        for bill in self.store.all():
            if bill.state is BillState.PENDING:
                self.bot.add_view(OpenVoteView(self, bill.ref, bill.chamber))
                continue
            # stale first-chamber buttons still need a handler to say the vote moved on
            for chamber in {rnd.chamber for rnd in bill.rounds}:
                self.bot.add_view(VoteView(self, bill.ref, chamber, include_end=False))
                self.bot.add_view(VoteView(self, bill.ref, chamber))
        self.vote_sweeper.start()

    async def cog_unload(self) -> None:
        self.vote_sweeper.cancel()
        try:
            self.store.save()
        except OSError:
            log.exception("could not save bills on unload")

    async def red_delete_data_for_user(self, **kwargs):
        """Bills are public record; nothing to delete."""
        return

    async def _apply_settings(self) -> None:
        hours = await self.config.vote_hours()
        self.workflow.vote_duration = timedelta(hours=hours) if hours > 0 else None
        restrict = await self.config.restrict_ballots()
        self.workflow.eligibility = chamber_members_only if restrict else None

    async def _role_keys(self, member) -> set[str]:
        held = {r.id for r in getattr(member, "roles", [])}
        roles = await self.config.roles()
        return {key for key, role_id in roles.items() if role_id in held}

    @tasks.loop(minutes=5)
    async def vote_sweeper(self):
        """Close any voting round whose time ran out."""
        closed = await self.workflow.close_expired()
        if closed:
            log.info("auto-closed expired votes: %s", ", ".join(closed))

    @vote_sweeper.before_loop
    async def _wait_ready_sweeper(self):
        await self.bot.wait_until_ready()

    # ---------- buttons ----------

    async def handle_control(self, interaction: discord.Interaction, custom_id: str) -> None:
        parsed = parse_control_id(custom_id)
        if parsed is None:
            log.warning("ignoring unknown control id %r", custom_id)
            return
        action, chamber, ref = parsed
        roles = await self._role_keys(interaction.user)
        await answer_control(interaction, self.workflow, action, ref, roles, chamber)

    # ---------- slash commands ----------

    congress = app_commands.Group(name="congress", description="Congress role-play commands")

    async def bill_ref_autocomplete(self, interaction: discord.Interaction, current: str):
        cur = (current or "").lower()
        refs = [b.ref for b in self.store.all() if cur in b.ref.lower() or cur in b.title.lower()]
        return [app_commands.Choice(name=r, value=r) for r in refs[-25:]]

    @congress.command(name="help", description="List the Congress RP commands")
    async def congress_help(self, interaction: discord.Interaction):
        embed = discord.Embed(title="Congress RP Bot Commands", description=HELP_TEXT, color=COLOR_HELP)
        await interaction.response.send_message(embed=embed)

    async def _submit(self, interaction: discord.Interaction, category: Category, name: str | None, content: str | None, chamber: str):
        # notifications post before the workflow returns
        await interaction.response.defer(thinking=True)
        try:
            bill = await self.workflow.submit_bill(
                category, Chamber(chamber), interaction.user.id, name or "Untitled", content or "No content"
            )
        except CongressError as e:
            return await send_reply(interaction, e.message)
        await send_reply(
            interaction,
            f"✅ Your {category.value} **{bill.title}** has been submitted as **{bill.ref}**.",
            ephemeral=False,
        )
        await self._record_link(interaction, bill.ref)

    async def _record_link(self, interaction: discord.Interaction, ref: str) -> None:
        try:
            msg = await interaction.original_response()
        except discord.HTTPException:
            log.warning("could not fetch the submission message for %s", ref)
            return
        self.store.set_message_link(ref, msg.jump_url)

    @congress.command(name="bill", description="Propose a bill (both chambers)")
    @app_commands.describe(name="Title of the bill", content="Text of the bill", chamber="Originating chamber")
    @app_commands.choices(chamber=CHAMBER_CHOICES)
    async def bill(self, interaction: discord.Interaction, name: str, content: str, chamber: str = "House"):
        await self._submit(interaction, Category.BILL, name, content, chamber)

    @congress.command(name="res", description="Propose a resolution (one chamber)")
    @app_commands.describe(name="Title of the resolution", content="Text of the resolution", chamber="Originating chamber")
    @app_commands.choices(chamber=CHAMBER_CHOICES)
    async def res(self, interaction: discord.Interaction, name: str, content: str, chamber: str = "House"):
        await self._submit(interaction, Category.RESOLUTION, name, content, chamber)

    @congress.command(name="amm", description="Propose an amendment (both chambers, two-thirds)")
    @app_commands.describe(name="Title of the amendment", content="Text of the amendment", chamber="Originating chamber")
    @app_commands.choices(chamber=CHAMBER_CHOICES)
    async def amm(self, interaction: discord.Interaction, name: str, content: str, chamber: str = "House"):
        await self._submit(interaction, Category.AMENDMENT, name, content, chamber)

    @congress.command(name="motion", description="Propose a simple motion (one chamber)")
    @app_commands.describe(name="Title of the motion", content="Text of the motion", chamber="Originating chamber")
    @app_commands.choices(chamber=CHAMBER_CHOICES)
    async def motion(self, interaction: discord.Interaction, name: str, content: str, chamber: str = "House"):
        await self._submit(interaction, Category.MOTION, name, content, chamber)

    @congress.command(name="impeach", description="Submit Articles of Impeachment (Representatives only)")
    @app_commands.describe(person="Who is being impeached", designation="Their office", content="The articles")
    async def impeach(self, interaction: discord.Interaction, person: str, designation: str, content: str):
        await interaction.response.defer(thinking=True)
        roles = await self._role_keys(interaction.user)
        try:
            bill = await self.workflow.submit_impeachment(interaction.user.id, roles, person, designation, content)
        except CongressError as e:
            return await send_reply(interaction, e.message)
        await send_reply(interaction, f"✅ Articles of Impeachment **{bill.ref}** submitted.", ephemeral=False)
        await self._record_link(interaction, bill.ref)

    @congress.command(name="cosponsor", description="Add yourself as a co-sponsor")
    @app_commands.describe(bill="Bill number, e.g. H.R. 004")
    @app_commands.autocomplete(bill=bill_ref_autocomplete)
    async def cosponsor(self, interaction: discord.Interaction, bill: str):
        try:
            b = self.workflow.add_cosponsor(bill, interaction.user.id)
        except CongressError as e:
            return await send_reply(interaction, e.message)
        await send_reply(interaction, f"✅ You are now a co-sponsor of {b.ref}.")

    @congress.command(name="openvote", description="Open the floor vote on a pending bill (approver only)")
    @app_commands.autocomplete(bill=bill_ref_autocomplete)
    async def openvote(self, interaction: discord.Interaction, bill: str):
        roles = await self._role_keys(interaction.user)
        await answer_control(interaction, self.workflow, "open", bill, roles)

    @congress.command(name="endvote", description="End a vote early (approver only)")
    @app_commands.autocomplete(bill=bill_ref_autocomplete)
    async def endvote(self, interaction: discord.Interaction, bill: str):
        roles = await self._role_keys(interaction.user)
        await answer_control(interaction, self.workflow, "end", bill, roles)

    @congress.command(name="billinfo", description="Detailed bill info")
    @app_commands.autocomplete(bill=bill_ref_autocomplete)
    async def billinfo(self, interaction: discord.Interaction, bill: str):
        try:
            b = self.workflow.bill_detail(bill)
        except CongressError as e:
            return await send_reply(interaction, e.message)
        embed = create_bill_embed(b)
        history = []
        for rnd in b.rounds:
            if rnd.result is None:
                history.append(f"{rnd.chamber.value}: voting ({len(rnd.ballots)} ballots so far)")
            else:
                verdict = "Passed" if rnd.result.passed else "Failed"
                history.append(f"{rnd.chamber.value}: {verdict} - {describe_tally(rnd.result)} ({rnd.closed_reason})")
        if history:
            embed.add_field(name="Votes", value="\n".join(history)[:1024], inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @congress.command(name="sessioninfo", description="Show current session info")
    async def sessioninfo(self, interaction: discord.Interaction):
        info = self.workflow.session_info()
        embed = discord.Embed(title=f"Session {info.number}", color=COLOR_HELP)
        embed.add_field(name="Started", value=discord.utils.format_dt(info.started_at, "R"), inline=True)
        embed.add_field(name="Bills this session", value=str(info.session_bills), inline=True)
        embed.add_field(name="Bills all-time", value=str(info.total_bills), inline=True)
        embed.add_field(name="Pending", value=str(info.pending), inline=True)
        embed.add_field(name="Voting", value=str(info.voting), inline=True)
        embed.add_field(name="Passed", value=str(info.passed), inline=True)
        embed.add_field(name="Failed", value=str(info.failed), inline=True)
        await interaction.response.send_message(embed=embed)

    @congress.command(name="mybills", description="Show bills you proposed")
    async def mybills(self, interaction: discord.Interaction):
        bills = self.workflow.bills_by_proposer(interaction.user.id)
        embed = discord.Embed(title="Your Bills", description=_bill_lines(bills), color=COLOR_HELP)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @congress.command(name="passed", description="View passed bills")
    async def passed(self, interaction: discord.Interaction):
        embed = discord.Embed(title="Passed Bills", description=_bill_lines(self.workflow.passed_bills()), color=0x00FF00)
        await interaction.response.send_message(embed=embed)

    @congress.command(name="failed", description="View failed bills")
    async def failed(self, interaction: discord.Interaction):
        embed = discord.Embed(title="Failed Bills", description=_bill_lines(self.workflow.failed_bills()), color=0xFF0000)
        await interaction.response.send_message(embed=embed)

    # ---------- admin ----------

    @commands.group(name="congressset")
    @commands.guild_only()
    @commands.admin_or_permissions(manage_guild=True)
    async def congressset(self, ctx: commands.Context):
        """Configure roles, channels and voting for Congress RP."""
        pass

    @congressset.command(name="role")
    async def congressset_role(self, ctx: commands.Context, key: str, role: discord.Role):
        """Map a role key (representative, senator, speaker, majority_leader, president) to a role."""
        if key not in DEFAULT_ROLES:
            return await ctx.send(f"Unknown role key. Pick one of: {', '.join(DEFAULT_ROLES)}")
        async with self.config.roles() as roles:
            roles[key] = role.id
        await ctx.send(f"`{key}` is now {role.name}.")

    @congressset.command(name="channel")
    async def congressset_channel(self, ctx: commands.Context, key: str, channel: discord.TextChannel | discord.Thread):
        """Map a channel key (house_voting, speaker_thread, passed_laws, ...) to a channel or thread."""
        if key not in DEFAULT_CHANNELS:
            return await ctx.send(f"Unknown channel key. Pick one of: {', '.join(DEFAULT_CHANNELS)}")
        async with self.config.channels() as channels:
            channels[key] = channel.id
        await ctx.send(f"`{key}` is now {channel.mention}.")

    @congressset.command(name="votehours")
    async def congressset_votehours(self, ctx: commands.Context, hours: int):
        """How long a vote stays open before it closes itself. 0 disables expiry."""
        if hours < 0:
            return await ctx.send("Hours can't be negative.")
        await self.config.vote_hours.set(hours)
        await self._apply_settings()
        await ctx.send(f"Votes now close after {hours} hours." if hours else "Votes no longer expire on their own.")

    @congressset.command(name="restrictballots")
    async def congressset_restrictballots(self, ctx: commands.Context, enabled: bool):
        """Only let members of the voting chamber cast ballots."""
        await self.config.restrict_ballots.set(enabled)
        await self._apply_settings()
        await ctx.send(f"Chamber-only ballots: {enabled}")

    @congressset.command(name="newsession")
    async def congressset_newsession(self, ctx: commands.Context):
        """Start the next legislative session."""
        number = self.workflow.new_session()
        await ctx.send(f"📜 Session {number} has begun.")

    @congressset.command(name="show")
    async def congressset_show(self, ctx: commands.Context):
        """Show the current settings."""
        roles = await self.config.roles()
        channels = await self.config.channels()
        embed = discord.Embed(title="Congress RP Settings", color=COLOR_HELP)
        embed.add_field(name="Roles", value="\n".join(f"{k}: <@&{v}>" if v else f"{k}: unset" for k, v in roles.items()), inline=False)
        embed.add_field(name="Channels", value="\n".join(f"{k}: <#{v}>" if v else f"{k}: unset" for k, v in channels.items()), inline=False)
        embed.add_field(name="Vote hours", value=str(await self.config.vote_hours()), inline=True)
        embed.add_field(name="Chamber-only ballots", value=str(await self.config.restrict_ballots()), inline=True)
        embed.add_field(name="Session", value=str(self.store.current_session), inline=True)
        await ctx.send(embed=embed)
