"""
Unified backend entry point.

Architecture:
- One Python process, one asyncio event loop
- Three peer services running concurrently:
  1. FastAPI (HTTP API for the timerboard)
  2. Discord bot (WebSocket connection to Discord, slash commands)
  3. APScheduler (fleet dispatch tick and fleet list publishing)

We use FastAPI's lifespan to manage startup/shutdown, but at runtime
all services are equal peers in the event loop.

Run with: python main.py [--no-bot] [--port PORT]
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

project_root = Path(__file__).parent

# Load .env.local first (if exists), then .env as fallback
load_dotenv(project_root / ".env.local")
load_dotenv()

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import check_required_env_vars, get_api_port, get_app_url, is_discord_bot_disabled
from core.database import close_engine
from core.notifications import init_scheduler, shutdown_scheduler
from discord_bot.main import bot
from web_api.routes.auth import router as auth_router
from web_api.routes.fleets import router as fleets_router

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

if os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(
        dsn=os.environ["SENTRY_DSN"],
        environment=os.environ.get("SENTRY_ENVIRONMENT", "development"),
        traces_sample_rate=0.1,
    )

# Track bot task for cleanup
_bot_task: asyncio.Task | None = None


async def start_bot():
    """
    Start Discord bot (non-blocking).

    Uses bot.start() instead of bot.run() so it can run
    alongside FastAPI in the same event loop.
    """
    if is_discord_bot_disabled():
        logger.info("Discord bot disabled (--no-bot flag or DISABLE_DISCORD_BOT=true)")
        return

    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.warning("DISCORD_BOT_TOKEN not set, Discord bot will not start")
        return

    try:
        await bot.start(token)
    except Exception as e:
        logger.error(f"Discord bot error: {e}")
        sentry_sdk.capture_exception(e)
        raise


async def stop_bot():
    """Stop Discord bot gracefully."""
    if bot and not bot.is_closed():
        await bot.close()
        logger.info("Discord bot stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Starts peer services (Discord bot, scheduler) alongside FastAPI in the
    same event loop.
    """
    global _bot_task

    ok, missing = check_required_env_vars()
    if not ok:
        logger.warning(f"Missing environment variables: {', '.join(missing)}")

    logger.info("Starting Discord bot...")
    _bot_task = asyncio.create_task(start_bot())
    init_scheduler()

    yield  # FastAPI runs here, bot and scheduler run alongside it

    logger.info("Shutting down peer services...")
    shutdown_scheduler()
    await stop_bot()
    await close_engine()
    if _bot_task:
        _bot_task.cancel()
        try:
            await _bot_task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="Fleet Timerboard API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_app_url(), "http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(fleets_router)


@app.get("/api/status")
async def api_status():
    return {
        "status": "ok",
        "bot_ready": bot.is_ready() if bot else False,
    }


@app.get("/health")
async def health():
    """Health check endpoint with detailed status."""
    return {
        "status": "healthy",
        "bot_connected": bot.is_ready() if bot else False,
        "bot_latency_ms": round(bot.latency * 1000) if bot and bot.is_ready() else None,
    }


if __name__ == "__main__":
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Fleet Timerboard Server")
    parser.add_argument(
        "--no-bot",
        action="store_true",
        help="Disable Discord bot (useful for running multiple dev servers)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.no_bot:
        os.environ["DISABLE_DISCORD_BOT"] = "true"

    uvicorn.run(app, host="0.0.0.0", port=args.port)
