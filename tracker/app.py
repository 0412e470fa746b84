"""
HTTP API behind the dashboard: pass search, current ISS position and live tracker state.
"""
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request

from .client import PositionClient
from .config import Config
from .errors import PassLookupError
from .live import LiveTracker
from .models import Countdown, Location, PassRecord, PassSearchResponse, Position
from .passes import PassService, countdown
from .storage import MongoSink

logger = structlog.get_logger(__name__)

router = APIRouter()


def connect_sink(config: Config) -> Optional[MongoSink]:
    """Connect the MongoDB sink, or None when it is unavailable."""
    try:
        sink = MongoSink(config=config.as_dict())
    except (KeyError, ValueError) as e:
        logger.warning("sink_not_configured", error=str(e))
        return None
    if not sink.connect():
        logger.warning("sink_unavailable", uri=sink.connection_string)
        return None
    return sink


def create_app(config: Config = None, client: PositionClient = None,
               start_tracker: bool = True) -> FastAPI:
    """Build the API. Collaborators are constructed here and kept on ``app.state``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or Config()
        sink = None
        position_client = client
        if position_client is None:
            sink = connect_sink(cfg)
            position_client = PositionClient.from_config(cfg, sink=sink)

        tracker = LiveTracker(
            position_client,
            interval=float(cfg.tracker.get('poll_interval', 5.0)),
            history_size=int(cfg.tracker.get('history_size', 50)),
        )
        app.state.client = position_client
        app.state.passes = PassService(
            position_client,
            simulated_delay=float(cfg.passes.get('simulated_delay', 1.0)),
        )
        app.state.tracker = tracker

        if start_tracker:
            tracker.start()
        try:
            yield
        finally:
            await tracker.stop()
            await position_client.aclose()
            if sink is not None:
                sink.close()

    app = FastAPI(title="Satellite Tracker", lifespan=lifespan)
    app.include_router(router)
    return app


def get_client(request: Request) -> PositionClient:
    return request.app.state.client


def get_pass_service(request: Request) -> PassService:
    return request.app.state.passes


def get_tracker(request: Request) -> LiveTracker:
    return request.app.state.tracker


@router.get("/")
def read_root():
    return {"message": "Welcome to Satellite Tracker API!"}


@router.get("/api/iss/now", response_model=Position)
async def current_position(client: PositionClient = Depends(get_client)):
    position = await client.get_current_position()
    if position is None:
        raise HTTPException(status_code=503, detail="ISS position unavailable")
    return position


@router.get("/api/iss/live")
def live_state(tracker: LiveTracker = Depends(get_tracker)):
    return tracker.snapshot()


@router.post("/api/iss/live/refresh")
async def live_refresh(tracker: LiveTracker = Depends(get_tracker)):
    await tracker.refresh()
    return tracker.snapshot()


@router.get("/api/passes", response_model=PassSearchResponse)
async def search_passes(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    city: Optional[str] = None,
    service: PassService = Depends(get_pass_service),
):
    label = city or f"Location {lat}, {lon}"
    try:
        passes = await service.search(lat, lon, label=label)
    except PassLookupError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return PassSearchResponse(location=Location(lat=lat, lon=lon, city=label), passes=passes)


@router.get("/api/passes/{norad_id}/countdown")
def next_pass_countdown(norad_id: int, service: PassService = Depends(get_pass_service)):
    upcoming = service.upcoming(norad_id=norad_id)
    if not upcoming:
        raise HTTPException(status_code=404, detail=f"No upcoming pass for NORAD {norad_id}")
    next_pass: PassRecord = upcoming[0]
    remaining: Countdown = countdown(next_pass.start_time)
    return {"pass": next_pass, "countdown": remaining}


app = create_app()
