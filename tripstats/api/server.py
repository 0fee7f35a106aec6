"""FastAPI server exposing the engagement stats report."""
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import create_async_engine

from tripstats.analytics.composer import StatsRequest, build_stats
from tripstats.config import Settings, configure_logging
from tripstats.errors import StatsTimeoutError, StorageUnavailableError
from tripstats.models import StatsResponse
from tripstats.store.base import StatsStore
from tripstats.store.sql import SQLStatsStore

_log = logging.getLogger(__name__)

settings = Settings.from_env()
configure_logging(settings.log_level)

# ── Store lifecycle ──────────────────────────────────────────────────────────
# The engine (and its pool) lives as long as the app; requests get the store
# through the get_store dependency so tests can swap it out.

@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = create_async_engine(settings.database_url)
    app.state.store = SQLStatsStore(engine)
    _log.info("[store] db=%s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()


app = FastAPI(title="tripstats API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["GET"],
    allow_headers=["*"],
)


def get_store(request: Request) -> StatsStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Storage unavailable")
    return store


def get_settings() -> Settings:
    return settings


async def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Principal forwarded by the auth layer in front of this service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id.strip()


# ── Endpoints ────────────────────────────────────────────────────────────────

@app.get("/health")
async def health(store: StatsStore = Depends(get_store)):
    """Check that the store answers."""
    try:
        await store.has_sessions()
    except StorageUnavailableError:
        raise HTTPException(status_code=503, detail="Storage unavailable")
    return {"status": "ok"}


@app.get("/stats", response_model=StatsResponse)
async def stats(
    response: Response,
    mode: str | None = Query(None),
    range_: str | None = Query(None, alias="range"),
    board_id: str | None = Query(None, alias="boardId"),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    target_user_id: str | None = Query(None, alias="userId"),
    user_id: str = Depends(current_user_id),
    store: StatsStore = Depends(get_store),
    cfg: Settings = Depends(get_settings),
):
    """Solo and group engagement stats for the calling user."""
    req = StatsRequest.from_params(
        user_id,
        mode=mode,
        range_=range_,
        board_id=board_id,
        start_date=start_date,
        end_date=end_date,
        target_user_id=target_user_id,
    )
    try:
        report = await build_stats(store, req, timeout=cfg.request_timeout)
    except StorageUnavailableError:
        _log.warning("stats for user=%s: storage unavailable", user_id)
        raise HTTPException(status_code=503, detail="Storage unavailable")
    except StatsTimeoutError:
        _log.warning("stats for user=%s timed out after %ss", user_id, cfg.request_timeout)
        raise HTTPException(status_code=504, detail="Stats request timed out")
    except Exception as exc:
        _log.exception("stats for user=%s failed", user_id)
        raise HTTPException(status_code=500, detail="Failed to build stats") from exc

    response.headers["Cache-Control"] = (
        f"private, max-age={cfg.cache_max_age}, stale-while-revalidate={cfg.cache_max_age}"
    )
    return report
