from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ecu_console.config import settings
from ecu_console.api.router import api_router
from ecu_console.services.console import DiagnosticConsole


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "console", None) is None:
        app.state.console = DiagnosticConsole.from_settings(settings)
    yield


app = FastAPI(title="ECU Diagnostic Console", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")
