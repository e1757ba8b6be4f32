"""
Fleet Timerboard - Discord Bot
Main entry point for the bot.

The bot runs slash commands for scheduling fleets and gives the
notification jobs a connection to post pings and fleet lists.
"""

import logging
import os

import discord
from discord.ext import commands
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def create_bot() -> commands.Bot:
    """Create and configure the bot instance."""
    intents = discord.Intents.default()
    intents.members = True  # Role lookups for permission checks

    bot = commands.Bot(command_prefix="!", intents=intents)
    return bot


bot = create_bot()


# List of cogs to load (thin adapters, business logic in core/)
COGS = [
    "discord_bot.cogs.fleet_cog",
]


@bot.tree.error
async def on_app_command_error(interaction: discord.Interaction, error: discord.app_commands.AppCommandError):
    """Global error handler for slash commands."""
    if isinstance(error, discord.app_commands.MissingPermissions):
        msg = f"You need **{', '.join(error.missing_permissions)}** permission(s) to use this command."
        if interaction.response.is_done():
            await interaction.followup.send(msg, ephemeral=True)
        else:
            await interaction.response.send_message(msg, ephemeral=True)
    else:
        raise error


@bot.event
async def on_ready():
    """Called when the bot is ready and connected to Discord."""
    logger.info(f"Bot is ready! Logged in as {bot.user}")

    for cog in COGS:
        try:
            if cog not in bot.extensions:
                await bot.load_extension(cog)
                logger.info(f"Loaded {cog}")
        except Exception as e:
            logger.error(f"Error loading {cog}: {e}")

    # Sync slash commands with Discord
    try:
        synced = await bot.tree.sync()
        logger.info(f"Synced {len(synced)} command(s)")
    except Exception as e:
        logger.error(f"Error syncing commands: {e}")


def main():
    """Run the bot on its own, without the API or scheduler."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        print("Error: DISCORD_BOT_TOKEN environment variable not set!")
        raise SystemExit(1)

    bot.run(token)


if __name__ == "__main__":
    main()
