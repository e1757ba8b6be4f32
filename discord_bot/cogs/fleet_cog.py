"""
Fleet Cog - Discord adapter for fleet scheduling.

Slash commands only record state through core.fleets; the pings themselves
go out on the dispatcher's next tick.
"""

from datetime import datetime, timezone

import discord
from discord import app_commands
from discord.ext import commands

from core.discord_outbound import set_bot
from core.fleets import (
    FleetNotFoundError,
    FleetStore,
    InvariantViolation,
    PersistenceError,
    Reject,
    can_create,
    can_manage,
    cancel_fleet,
    get_fleet,
    get_policy_for_fleet,
    list_fleets_for_member,
    propose_fleet,
    reschedule_fleet,
)
from core.notifications.render import discord_timestamp

UNAVAILABLE = "Scheduling is temporarily unavailable, please try again in a minute."

FORM_UP_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S")


def parse_form_up(text: str) -> datetime:
    """
    Parse a form-up time typed by a member. Times are EVE time (UTC).

    Raises:
        ValueError: If the text isn't a recognised date and time
    """
    text = text.strip()
    for fmt in FORM_UP_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"Couldn't read '{text}', use YYYY-MM-DD HH:MM (UTC)")


def member_roles(member: discord.Member) -> set[str]:
    return {str(role.id) for role in member.roles}


def is_admin(member: discord.Member) -> bool:
    return member.guild_permissions.administrator


class FleetCog(commands.Cog):
    """Cog for scheduling, rescheduling and cancelling fleets."""

    fleet = app_commands.Group(name="fleet", description="Schedule and manage fleets")

    def __init__(self, bot, store=None):
        self.bot = bot
        self.store = store or FleetStore()
        set_bot(bot)

    async def category_autocomplete(
        self,
        interaction: discord.Interaction,
        current: str,
    ) -> list[app_commands.Choice[int]]:
        """Categories the member may create fleets in."""
        try:
            policies = await self.store.get_guild_policies(str(interaction.guild_id))
        except PersistenceError:
            return []

        roles = member_roles(interaction.user)
        admin = is_admin(interaction.user)
        return [
            app_commands.Choice(name=policy.name[:100], value=policy.category_id)
            for policy in policies
            if (admin or can_create(policy, roles))
            and current.lower() in policy.name.lower()
        ][:25]

    @fleet.command(name="create", description="Schedule a fleet")
    @app_commands.describe(
        category="Fleet category",
        name="Fleet name",
        form_up="Form-up time, YYYY-MM-DD HH:MM (UTC)",
        location="Where to form up",
        notes="Anything else members should know",
        hidden="Don't announce until the reminder (or form-up)",
        no_reminder="Skip the reminder ping",
    )
    @app_commands.autocomplete(category=category_autocomplete)
    async def create(
        self,
        interaction: discord.Interaction,
        category: int,
        name: str,
        form_up: str,
        location: str | None = None,
        notes: str | None = None,
        hidden: bool = False,
        no_reminder: bool = False,
    ):
        await interaction.response.defer(ephemeral=True)

        try:
            form_up_time = parse_form_up(form_up)
        except ValueError as e:
            await interaction.followup.send(str(e), ephemeral=True)
            return

        try:
            policy = await self.store.get_category_policy(category)
            if policy is None or policy.guild_id != str(interaction.guild_id):
                await interaction.followup.send("Unknown fleet category.", ephemeral=True)
                return
            if not is_admin(interaction.user) and not can_create(
                policy, member_roles(interaction.user)
            ):
                await interaction.followup.send(
                    f"You can't schedule {policy.name} fleets.", ephemeral=True
                )
                return

            details = {}
            if location:
                details["Location"] = location
            if notes:
                details["Notes"] = notes

            result = await propose_fleet(
                self.store,
                category,
                form_up_time,
                details,
                datetime.now(timezone.utc),
                name=name,
                commander_id=str(interaction.user.id),
                hidden=hidden,
                disable_reminder=no_reminder,
            )
        except PersistenceError:
            await interaction.followup.send(UNAVAILABLE, ephemeral=True)
            return

        if isinstance(result, Reject):
            await interaction.followup.send(result.message, ephemeral=True)
            return

        fleet = result.fleet
        await interaction.followup.send(
            f"Scheduled **{fleet.name}** (#{fleet.id}) for "
            f"{discord_timestamp(fleet.form_up_time)}.",
            ephemeral=True,
        )

    async def _load_managed(self, interaction: discord.Interaction, fleet_id: int):
        """Load a fleet the member may manage, or tell them why not. Returns None on refusal."""
        try:
            fleet = await get_fleet(self.store, fleet_id)
            policy = await get_policy_for_fleet(self.store, fleet)
        except FleetNotFoundError:
            await interaction.followup.send(f"Fleet #{fleet_id} not found.", ephemeral=True)
            return None

        if policy.guild_id != str(interaction.guild_id):
            await interaction.followup.send(f"Fleet #{fleet_id} not found.", ephemeral=True)
            return None

        user_id = str(interaction.user.id)
        if not is_admin(interaction.user) and not can_manage(
            policy,
            member_roles(interaction.user),
            user_id=user_id,
            commander_id=fleet.commander_id,
        ):
            await interaction.followup.send("You can't manage this fleet.", ephemeral=True)
            return None
        return fleet

    @fleet.command(name="reschedule", description="Move a fleet's form-up time")
    @app_commands.describe(
        fleet_id="Fleet number",
        form_up="New form-up time, YYYY-MM-DD HH:MM (UTC)",
    )
    async def reschedule(
        self, interaction: discord.Interaction, fleet_id: int, form_up: str
    ):
        await interaction.response.defer(ephemeral=True)

        try:
            new_time = parse_form_up(form_up)
        except ValueError as e:
            await interaction.followup.send(str(e), ephemeral=True)
            return

        try:
            if await self._load_managed(interaction, fleet_id) is None:
                return
            result = await reschedule_fleet(
                self.store, fleet_id, new_time, datetime.now(timezone.utc)
            )
        except InvariantViolation as e:
            await interaction.followup.send(str(e), ephemeral=True)
            return
        except PersistenceError:
            await interaction.followup.send(UNAVAILABLE, ephemeral=True)
            return

        if isinstance(result, Reject):
            await interaction.followup.send(result.message, ephemeral=True)
            return
        await interaction.followup.send(
            f"Fleet #{fleet_id} now forms up {discord_timestamp(new_time)}.",
            ephemeral=True,
        )

    @fleet.command(name="cancel", description="Cancel a fleet")
    @app_commands.describe(fleet_id="Fleet number")
    async def cancel(self, interaction: discord.Interaction, fleet_id: int):
        await interaction.response.defer(ephemeral=True)

        try:
            if await self._load_managed(interaction, fleet_id) is None:
                return
            fleet = await cancel_fleet(self.store, fleet_id)
        except InvariantViolation as e:
            await interaction.followup.send(str(e), ephemeral=True)
            return
        except PersistenceError:
            await interaction.followup.send(UNAVAILABLE, ephemeral=True)
            return

        await interaction.followup.send(f"Cancelled **{fleet.name}**.", ephemeral=True)

    @fleet.command(name="list", description="Show upcoming fleets you can see")
    async def list_fleets(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)

        try:
            fleets = await list_fleets_for_member(
                self.store,
                str(interaction.guild_id),
                member_roles(interaction.user),
                datetime.now(timezone.utc),
            )
        except PersistenceError:
            await interaction.followup.send(UNAVAILABLE, ephemeral=True)
            return

        if not fleets:
            await interaction.followup.send("No upcoming fleets.", ephemeral=True)
            return

        lines = [
            f"#{fleet.id} **{fleet.name}** - {discord_timestamp(fleet.form_up_time)} "
            f"({discord_timestamp(fleet.form_up_time, 'R')})"
            for fleet in fleets[:20]
        ]
        await interaction.followup.send("\n".join(lines), ephemeral=True)


async def setup(bot):
    await bot.add_cog(FleetCog(bot))
