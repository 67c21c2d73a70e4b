from fastapi import FastAPI
from reco_engine.core.config import get_settings
from reco_engine.core.lifespan import lifespan
from reco_engine.api.v1.routers.health import router as health_router
from reco_engine.api.v1.routers.products import router as products_router
from reco_engine.api.v1.routers.events import router as events_router
from reco_engine.api.v1.routers.recommendations import router as recommendations_router
from reco_engine.api.v1.routers.admin import router as admin_router
from reco_engine.core.logging import configure_logging

import logging

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- Routes -------
app.include_router(health_router)
app.include_router(recommendations_router)   # tier cascade query
app.include_router(products_router)          # metadata upserts
app.include_router(events_router)            # views, cart, orders, profiles
app.include_router(admin_router)             # batch triggers (202 + background task)
