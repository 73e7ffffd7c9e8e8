"""RideSafe SOS FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ridesafe.api import auth, contacts, health, sos
from ridesafe.core.config import settings
from ridesafe.core.errors import register_error_handlers
from ridesafe.services.dispatch_service import channel_status, get_dispatcher

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the channel clients once so credential problems show up at boot.
    for name, state in channel_status(get_dispatcher()).items():
        if state["usable"]:
            logger.info("%s channel ready", name)
        else:
            logger.warning("%s channel unusable: %s", name, "; ".join(state["problems"]))
    yield


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

register_error_handlers(app)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(contacts.router)
app.include_router(sos.router)
