"""FastAPI application: the HTTP adapter over the event service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request, Response

from calendar_service.config import Settings, get_settings
from calendar_service.domain.models import Event
from calendar_service.logging_config import setup_logging
from calendar_service.middleware import (
    register_error_handlers,
    register_metrics_middleware,
    register_request_logging_middleware,
)
from calendar_service.observability import Observability
from calendar_service.repos.base import EventStore
from calendar_service.repos.factory import create_event_store
from calendar_service.services.events import EventService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(request: Request) -> EventService:
    return request.app.state.service


# ── Routes ────────────────────────────────────────────────────────────


@router.post("/events", status_code=201)
def create_event(payload: Event, service: EventService = Depends(get_service)) -> Response:
    """Store a new event; any id in the body is ignored."""
    event_id = service.create_event(payload.model_copy(update={"id": None}))
    return Response(status_code=201, headers={"Location": f"/events/{event_id}"})


@router.put("/events/{event_id}")
def update_event(
    event_id: str,
    payload: Event,
    service: EventService = Depends(get_service),
) -> Response:
    """Replace an event's fields; the id in the path wins over the body."""
    service.update_event(payload.with_id(service.parse_id(event_id)))
    return Response(status_code=200)


@router.delete("/events/{event_id}")
def delete_event(event_id: str, service: EventService = Depends(get_service)) -> Response:
    service.delete_event(service.parse_id(event_id))
    return Response(status_code=200)


@router.get("/events/{event_id}", response_model=Event, response_model_exclude_none=True)
def get_event(event_id: str, service: EventService = Depends(get_service)) -> Event:
    """Return a single event by id."""
    return service.get_event(service.parse_id(event_id))


@router.get("/events", response_model=list[Event], response_model_exclude_none=True)
def list_events(service: EventService = Depends(get_service)) -> list[Event]:
    """Return all stored events."""
    return service.list_events()


@router.get("/metrics", include_in_schema=False)
def metrics(request: Request) -> Response:
    observability: Observability = request.app.state.observability
    return Response(content=observability.render(), media_type=observability.content_type)


# ── Application factory ───────────────────────────────────────────────


def create_app(
    settings: Settings | None = None,
    store: EventStore | None = None,
    observability: Observability | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    settings:
        Configuration used to build the event store and set up logging.
        Defaults to ``get_settings()``, read when the app starts.
    store:
        A ready event store. When given, the app uses it as-is and neither
        configures logging nor closes the store on shutdown.
    observability:
        Logger and metrics context; a fresh one is created when omitted.
    """
    observability = observability or Observability()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        event_store = store
        if event_store is None:
            app_settings = settings or get_settings()
            setup_logging(app_settings.env, app_settings.log_level, app_settings.log_file)
            logger.info(
                "Starting calendar service (env=%s, backend=%s)",
                app_settings.env,
                app_settings.storage_backend,
            )
            event_store = create_event_store(app_settings)
        app.state.service = EventService(event_store, observability)

        yield

        if store is None:
            event_store.close()
        logger.info("Calendar service stopped")
        observability.shutdown()

    app = FastAPI(title="Calendar Event Service", lifespan=lifespan)
    app.state.observability = observability

    register_error_handlers(app)
    register_metrics_middleware(app, observability)
    register_request_logging_middleware(app, observability.logger.getChild("http"))
    app.include_router(router)
    return app


app = create_app()
