"""FastAPI application that exposes the tracker as a local JSON API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Literal, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from . import __version__
from .aggregation import PERIODS
from .app_context import AppContext
from .config import TrackerSettings
from .events import HostEvent, HostEventKind
from .paths import get_db_path

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ContextPayload(_CamelModel):
    workspace_name: Optional[str] = None
    workspace_path: Optional[str] = None
    language_id: str = Field(min_length=1)
    file_name: str = Field(min_length=1)


class EventPayload(_CamelModel):
    type: HostEventKind
    context: Optional[ContextPayload] = None
    edited_characters: int = Field(default=0, ge=0)
    focused: bool = True


class SettingsUpdate(_CamelModel):
    idle_timeout_ms: Optional[int] = Field(default=None, ge=0)
    show_status_bar: Optional[bool] = None
    status_bar_period: Optional[Literal["today", "week", "month"]] = None


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    context: Optional[AppContext] = None,
    run_ticks: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    ctx = context or AppContext(db_path or get_db_path(), settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        ctx.start(run_ticks=run_ticks)
        try:
            yield
        finally:
            ctx.shutdown()

    app = FastAPI(title="devclock", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.context = ctx

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        context: AppContext = request.app.state.context
        return {
            "tracking": context.is_tracking(),
            "state": context.state().value,
            "ticker_running": context.runner.is_running(),
            "status_text": context.status_text(),
            "database_path": str(context.db_path),
            "tick_seconds": context.settings.tick_interval.total_seconds(),
            "idle_timeout_ms": context.get_settings().idle_timeout_ms,
            "warnings": list(context.warnings),
        }

    @app.get("/api/today")
    def today(request: Request) -> Dict[str, Any]:
        return asdict(request.app.state.context.get_or_create_today_aggregate())

    @app.get("/api/summary/{period}")
    def summary(
        period: str,
        request: Request,
        offset: int = Query(default=0, description="0 for the current period, -1 for the previous one."),
    ) -> Dict[str, Any]:
        if period not in PERIODS:
            raise HTTPException(
                status_code=400, detail=f"period must be one of {', '.join(PERIODS)}"
            )
        result = request.app.state.context.generate_summary(period, offset)
        return {
            "period": period,
            "offset": offset,
            "summary": asdict(result) if result is not None else None,
        }

    @app.post("/api/events")
    def post_event(payload: EventPayload, request: Request) -> Dict[str, Any]:
        context: AppContext = request.app.state.context
        event = HostEvent.from_dict(payload.model_dump(mode="json", by_alias=True, exclude_none=True))
        context.dispatch(event)
        return {"state": context.state().value, "status_text": context.status_text()}

    @app.get("/api/settings")
    def get_settings(request: Request) -> Dict[str, Any]:
        return request.app.state.context.get_settings().to_dict()

    @app.patch("/api/settings")
    def patch_settings(payload: SettingsUpdate, request: Request) -> Dict[str, Any]:
        updated = request.app.state.context.update_settings(**payload.model_dump(exclude_unset=True))
        return updated.to_dict()

    @app.get("/api/export")
    def export_data(request: Request) -> Dict[str, Any]:
        context: AppContext = request.app.state.context
        return {**context.export_data(), "stats": asdict(context.data_stats())}

    @app.post("/api/import")
    def import_data(request: Request, payload: Any = Body(...)) -> Dict[str, Any]:
        result = request.app.state.context.import_data(payload)
        if not result.success:
            raise HTTPException(status_code=400, detail=result.message)
        return asdict(result)

    @app.delete("/api/data")
    def clear_data(request: Request) -> Dict[str, Any]:
        context: AppContext = request.app.state.context
        context.clear_all_data()
        return asdict(context.data_stats())

    return app
