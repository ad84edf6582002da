import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from .config import settings
from .database import Base, engine
from .errors import QuoteCalcError
from .routers import auth, calculations, customers, line_items, pricing, quote_parts, quotes, templates

logger = logging.getLogger("quotecalc")

# New tables only; column changes go through Alembic
Base.metadata.create_all(bind=engine)

ALEMBIC_INI = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
INITIAL_REVISION = "5b1f0c2d9e47"


def _alembic_config():
    from alembic.config import Config

    if not os.path.exists(ALEMBIC_INI):
        return None
    config = Config(ALEMBIC_INI)
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    return config


def _run_migrations():
    """Bring the database to the Alembic head on startup.

    create_all() above may already have built the tables on a fresh database;
    in that case the initial revision is stamped rather than re-run.
    """
    from alembic import command

    try:
        config = _alembic_config()
        if config is None:
            logger.info("alembic.ini not found, skipping migrations")
            return

        tables = set(inspect(engine).get_table_names())
        if "alembic_version" not in tables and "quotes" in tables:
            logger.info("Stamping %s: tables predate Alembic", INITIAL_REVISION)
            command.stamp(config, INITIAL_REVISION)

        command.upgrade(config, "head")
        logger.info("Database at Alembic head")
    except Exception as e:
        # Serving with the current schema beats not serving
        logger.warning("Alembic migration failed: %s", e)


app = FastAPI(
    title="Quote Pricing Calculator",
    description="Per-part price calculator and quote totals for machined parts",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QuoteCalcError)
async def handle_domain_error(request: Request, exc: QuoteCalcError):
    logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


for module in (auth, customers, quotes, quote_parts, line_items, calculations, pricing, templates):
    app.include_router(module.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "quotecalc"}


@app.on_event("startup")
def auto_migrate():
    _run_migrations()
