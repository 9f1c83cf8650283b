import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from selfgate.api.routes import router
from selfgate.api.admin_routes import router as admin_router
from selfgate.bot.discord_bot import DiscordPlatform, VerifyBot, run_bot
from selfgate.core.engine import VerificationEngine, build_engine
from selfgate.observability.logging import error_text, log
from selfgate.settings import settings
from selfgate.verifier.client import SelfVerifierClient


def build_verifier() -> SelfVerifierClient:
    return SelfVerifierClient(
        settings.SELF_VERIFIER_URL,
        scope=settings.SELF_SCOPE,
        endpoint=settings.SELF_ENDPOINT,
        minimum_age=settings.MINIMUM_AGE,
        ofac=settings.OFAC_CHECK,
        mock_passport=settings.SELF_MOCK_PASSPORT,
        timeout_sec=settings.SELF_VERIFIER_TIMEOUT_SEC,
    )


async def sweep_sessions(engine: VerificationEngine, interval_sec: float) -> None:
    while True:
        await asyncio.sleep(interval_sec)
        engine.sweep()


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine: VerificationEngine = app.state.engine
    tasks = []

    if settings.SESSION_SWEEP_INTERVAL_SEC > 0:
        tasks.append(asyncio.create_task(sweep_sessions(engine, settings.SESSION_SWEEP_INTERVAL_SEC)))

    bot = None
    if settings.DISCORD_BOT_TOKEN:
        bot = VerifyBot(engine, guild_id=settings.DISCORD_GUILD_ID, role_id=settings.DISCORD_VERIFIED_ROLE_ID)
        app.state.platform.attach(bot)
        tasks.append(asyncio.create_task(run_bot(bot, settings.DISCORD_BOT_TOKEN)))
    else:
        log("discord.config_missing", "DISCORD_BOT_TOKEN is not set, Discord bot will not start")

    log(
        "server.started",
        "Self verification backend started",
        endpoint=settings.SELF_ENDPOINT,
        deliveryMode=settings.DELIVERY_MODE,
        mockPassport=settings.SELF_MOCK_PASSPORT,
    )
    try:
        yield
    finally:
        if bot is not None and not bot.is_closed():
            await bot.close()
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


app = FastAPI(title="Self Discord Verifier", lifespan=lifespan)

platform = DiscordPlatform()
app.state.platform = platform
app.state.engine = build_engine(settings, platform)
app.state.verifier = build_verifier()

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


# The Self relayer treats any non-200 as a delivery failure; answer in the
# verify-response shape instead.
@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log(
        "server.unhandled_error",
        "Unhandled exception while serving request",
        path=request.url.path,
        errorType=type(exc).__name__,
        error=error_text(exc),
    )
    return JSONResponse(
        status_code=200,
        content={"status": "error", "result": False, "reason": "Unknown verification error"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("selfgate.main:app", host="0.0.0.0", port=settings.PORT)
