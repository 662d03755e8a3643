from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schooltime.api.v1.audit.router import router as audit_router
from schooltime.api.v1.rooms.router import router as rooms_router
from schooltime.api.v1.schedules.router import router as schedules_router
from schooltime.api.v1.time_slots.router import router as time_slots_router
from schooltime.api.v1.timetable_entries.router import router as timetable_entries_router
from schooltime.api.v1.timetables.router import router as timetables_router
from schooltime.core.config import settings
from schooltime.core.logging import setup_logging


def create_app() -> FastAPI:
    setup_logging(json_output=settings.log_json, log_level=settings.log_level)

    app = FastAPI(title="Schooltime Timetabling")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(time_slots_router)
    app.include_router(rooms_router)
    app.include_router(timetables_router)
    app.include_router(timetable_entries_router)
    app.include_router(schedules_router)
    app.include_router(audit_router)

    return app


app = create_app()
