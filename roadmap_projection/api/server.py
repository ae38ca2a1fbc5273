"""
Roadmap Projection Engine: API Server
=====================================

HTTP surface over the projection engine.

Endpoints:
- GET    /health
- GET    /api/v1/projects/{project_id}/projection?actor=   -> Projection snapshot
- GET    /api/v1/projects/{project_id}/overlay             -> Overlay state
- DELETE /api/v1/projects/{project_id}/overlay             -> Reset overlay
- POST   /api/v1/projects/{project_id}/overlay/{action}    -> Overlay mutators
- POST   /api/v1/projects/{project_id}/overlay/storage-event -> External change

Usage:
    uvicorn roadmap_projection.api.server:app --reload
"""
from contextlib import asynccontextmanager
import logging
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..config import ProjectionConfig
from ..contracts.errors import InvalidOverlayValue
from ..contracts.overlay import UIOverlayState
from ..contracts.projection import ProjectionStatus
from ..engine import RoadmapEngine
from ..overlay.store import OverlayStore
from .mapper import map_overlay_to_dto, map_projection_to_dto


_LOGGER = logging.getLogger("roadmap_projection.api")


# =============================================================================
# REQUEST BODIES
# =============================================================================

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ToggleTrackBody(_Body):
    track_id: str
    currently_collapsed: Optional[bool] = None


class SetTrackCollapsedBody(_Body):
    track_id: str
    collapsed: bool


class ToggleSubtrackBody(_Body):
    subtrack_id: str
    currently_collapsed: Optional[bool] = None


class SetSubtrackCollapsedBody(_Body):
    subtrack_id: str
    collapsed: bool


class HighlightBody(_Body):
    track_id: str
    highlighted: bool = True


class FocusBody(_Body):
    track_id: Optional[str] = None


class ViewModeBody(_Body):
    view_mode: str


class AnchorDateBody(_Body):
    anchor_date: str


class NavigateBody(_Body):
    count: int = 1


class DayViewBody(_Body):
    week_start: str


class CollapseTracksBody(_Body):
    track_ids: List[str]


class StorageEventBody(_Body):
    old_value: Optional[str] = None
    new_value: Optional[str] = None


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(
    config: Optional[ProjectionConfig] = None,
    engine: Optional[RoadmapEngine] = None,
) -> FastAPI:
    """Build the API around an engine (or one wired from configuration)."""
    if engine is None:
        engine = RoadmapEngine(config or ProjectionConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _LOGGER.info(
            "Projection API starting (lookup mode %s)", engine.config.lookup_mode.value
        )
        yield
        _LOGGER.info("Projection API shutting down")

    app = FastAPI(
        title="Roadmap Projection Engine API",
        version="0.1.0",
        description="Read-only roadmap projections and per-device overlay state",
        lifespan=lifespan,
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


def _engine(request: Request) -> RoadmapEngine:
    return request.app.state.engine


def _mutate(engine: RoadmapEngine, project_id: str, action: Callable[[OverlayStore], UIOverlayState]):
    try:
        state = action(engine.overlay)
    except InvalidOverlayValue as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return map_overlay_to_dto(project_id, state)


# =============================================================================
# ENDPOINTS
# =============================================================================

def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check():
        """System status."""
        return {"status": "online", "mode": "projection"}

    @app.get("/api/v1/projects/{project_id}/projection")
    async def get_projection(
        project_id: str,
        actor: Optional[str] = None,
        engine: RoadmapEngine = Depends(_engine),
    ):
        """
        Build the projection for a project.

        A domain fetch failure answers 502 with the error snapshot.
        """
        service = engine.open_projection()
        try:
            snapshot = await service.set_context(project_id, actor)
        finally:
            service.close()

        dto = map_projection_to_dto(snapshot)
        if snapshot.status is ProjectionStatus.ERROR:
            return JSONResponse(status_code=502, content=dto)
        return dto

    @app.get("/api/v1/projects/{project_id}/overlay")
    async def get_overlay(project_id: str, engine: RoadmapEngine = Depends(_engine)):
        return map_overlay_to_dto(project_id, engine.overlay.current(project_id))

    @app.delete("/api/v1/projects/{project_id}/overlay")
    async def reset_overlay(project_id: str, engine: RoadmapEngine = Depends(_engine)):
        return map_overlay_to_dto(project_id, engine.overlay.reset(project_id))

    @app.get("/api/v1/projects/{project_id}/overlay/tracks/{track_id}/collapsed")
    async def get_track_collapsed(project_id: str, track_id: str, engine: RoadmapEngine = Depends(_engine)):
        return {"trackId": track_id, "collapsed": engine.overlay.is_track_collapsed(project_id, track_id)}

    @app.get("/api/v1/projects/{project_id}/overlay/subtracks/{subtrack_id}/collapsed")
    async def get_subtrack_collapsed(project_id: str, subtrack_id: str, engine: RoadmapEngine = Depends(_engine)):
        return {
            "subtrackId": subtrack_id,
            "collapsed": engine.overlay.is_subtrack_collapsed(project_id, subtrack_id),
        }

    # -------------------------------------------------------------------------
    # Collapse
    # -------------------------------------------------------------------------

    @app.post("/api/v1/projects/{project_id}/overlay/toggle-track-collapse")
    async def toggle_track_collapse(project_id: str, body: ToggleTrackBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.toggle_track_collapse(
            project_id, body.track_id, body.currently_collapsed
        ))

    @app.post("/api/v1/projects/{project_id}/overlay/set-track-collapsed")
    async def set_track_collapsed(project_id: str, body: SetTrackCollapsedBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.set_track_collapsed(
            project_id, body.track_id, body.collapsed
        ))

    @app.post("/api/v1/projects/{project_id}/overlay/toggle-subtrack-collapse")
    async def toggle_subtrack_collapse(project_id: str, body: ToggleSubtrackBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.toggle_subtrack_collapse(
            project_id, body.subtrack_id, body.currently_collapsed
        ))

    @app.post("/api/v1/projects/{project_id}/overlay/set-subtrack-collapsed")
    async def set_subtrack_collapsed(project_id: str, body: SetSubtrackCollapsedBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.set_subtrack_collapsed(
            project_id, body.subtrack_id, body.collapsed
        ))

    @app.post("/api/v1/projects/{project_id}/overlay/expand-all")
    async def expand_all(project_id: str, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.expand_all(project_id))

    @app.post("/api/v1/projects/{project_id}/overlay/collapse-tracks")
    async def collapse_tracks(project_id: str, body: CollapseTracksBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.collapse_tracks(project_id, body.track_ids))

    # -------------------------------------------------------------------------
    # Highlight / focus
    # -------------------------------------------------------------------------

    @app.post("/api/v1/projects/{project_id}/overlay/set-highlighted")
    async def set_highlighted(project_id: str, body: HighlightBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.set_highlighted(
            project_id, body.track_id, body.highlighted
        ))

    @app.post("/api/v1/projects/{project_id}/overlay/clear-highlights")
    async def clear_highlights(project_id: str, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.clear_highlights(project_id))

    @app.post("/api/v1/projects/{project_id}/overlay/set-focused")
    async def set_focused(project_id: str, body: FocusBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.set_focused(project_id, body.track_id))

    @app.post("/api/v1/projects/{project_id}/overlay/clear-focus")
    async def clear_focus(project_id: str, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.clear_focus(project_id))

    # -------------------------------------------------------------------------
    # View navigation
    # -------------------------------------------------------------------------

    @app.post("/api/v1/projects/{project_id}/overlay/set-view-mode")
    async def set_view_mode(project_id: str, body: ViewModeBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.set_view_mode(project_id, body.view_mode))

    @app.post("/api/v1/projects/{project_id}/overlay/set-anchor-date")
    async def set_anchor_date(project_id: str, body: AnchorDateBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.set_anchor_date(project_id, body.anchor_date))

    @app.post("/api/v1/projects/{project_id}/overlay/navigate-weeks")
    async def navigate_weeks(project_id: str, body: NavigateBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.navigate_weeks(project_id, body.count))

    @app.post("/api/v1/projects/{project_id}/overlay/navigate-months")
    async def navigate_months(project_id: str, body: NavigateBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.navigate_months(project_id, body.count))

    @app.post("/api/v1/projects/{project_id}/overlay/navigate-to-today")
    async def navigate_to_today(project_id: str, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.navigate_to_today(project_id))

    @app.post("/api/v1/projects/{project_id}/overlay/enter-day-view")
    async def enter_day_view(project_id: str, body: DayViewBody, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.enter_day_view(project_id, body.week_start))

    @app.post("/api/v1/projects/{project_id}/overlay/return-to-week-view")
    async def return_to_week_view(project_id: str, engine: RoadmapEngine = Depends(_engine)):
        return _mutate(engine, project_id, lambda store: store.return_to_week_view(project_id))

    # -------------------------------------------------------------------------
    # Cross-instance sync
    # -------------------------------------------------------------------------

    @app.post("/api/v1/projects/{project_id}/overlay/storage-event")
    async def storage_event(project_id: str, body: StorageEventBody, engine: RoadmapEngine = Depends(_engine)):
        """Report that another client changed this project's overlay entry."""
        broadcast = engine.channel.notify_storage_event(
            engine.overlay.storage_key(project_id), body.old_value, body.new_value, project_id
        )
        return {"broadcast": broadcast, "overlay": map_overlay_to_dto(project_id, engine.overlay.current(project_id))}


app = create_app()
