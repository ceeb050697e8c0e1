import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Header, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from unibon.config import INSECURE_JWT_SECRET, get_settings
from unibon.database import init_db
from unibon.api.auth import router as auth_router
from unibon.api.receipts import router as receipts_router
from unibon.telegram_bot.bot import schedule_telegram_update, start_bot, shutdown_bot

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, start the bot; stop the bot on shutdown."""
    settings = get_settings()

    if settings.jwt_secret == INSECURE_JWT_SECRET and settings.environment != "development":
        logger.warning("JWT_SECRET is the insecure default; set it in production")

    init_db()
    logger.info("Database ready")

    await start_bot()
    yield

    logger.info("Shutting down Telegram bot")
    await shutdown_bot()


app = FastAPI(
    title="UniBon API",
    description="Receipt analysis and storage, over REST and Telegram",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Errors are {"error": "..."} on the wire
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": VERSION
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "UniBon API",
        "docs": "/docs"
    }


# Telegram webhook endpoint (TELEGRAM_MODE=webhook)
@app.post("/telegram/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str = Header(None)
):
    """
    Webhook endpoint for Telegram updates.

    Answers 200 immediately; the update is handled in the background.
    """
    settings = get_settings()

    if not settings.telegram_bot_token:
        raise HTTPException(status_code=503, detail="Telegram bot not configured")

    # Verify secret token if configured
    if settings.telegram_webhook_secret:
        if x_telegram_bot_api_secret_token != settings.telegram_webhook_secret:
            raise HTTPException(status_code=403, detail="Invalid secret token")

    update_data = await request.json()

    schedule_telegram_update(update_data)

    return {"ok": True}


app.include_router(auth_router)
app.include_router(receipts_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
