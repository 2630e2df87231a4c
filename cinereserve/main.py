from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from cinereserve.core.config import settings
from cinereserve.core.logging import setup_logging
from cinereserve.api.exception_handlers import register_exception_handlers
from cinereserve.api.v1.api import api_router
from cinereserve.services.showtime_source import make_demo_showtime, sandbox_showtimes

setup_logging()

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = [
    "http://127.0.0.1:3000", "http://localhost:3000",
    "http://127.0.0.1:5173", "http://localhost:5173",
]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router)

if settings.SANDBOX_SHOWTIMES_ENABLED and not sandbox_showtimes.all():
    sandbox_showtimes.add(make_demo_showtime())

logger.info("{} started (env={}, tz={})", settings.APP_NAME, settings.ENV, settings.THEATER_TIMEZONE)


@app.get("/health")
def health():
    return {"status": "ok"}
