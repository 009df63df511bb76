# backend/main.py
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import init_db
from utils.errors import register_error_handlers

load_dotenv()

# Router imports
from routes.auth import router as auth_router
from routes.businesses import router as businesses_router
from routes.cart import router as cart_router
from routes.favorites import router as favorites_router
from routes.jobs import router as jobs_router
from routes.logs import router as logs_router
from routes.notifications import router as notifications_router
from routes.orders import router as orders_router
from routes.parts import router as parts_router
from routes.permissions import router as permissions_router
from routes.pm import router as pm_router
from routes.tradie import router as tradie_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database ready, environment=%s", settings.NODE_ENV)
    yield


def create_app(run_init_db: bool = True) -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Fire Parts Portal API",
        version="1.0.0",
        lifespan=lifespan if run_init_db else None,
    )

    # CORS configuration; the session cookie needs explicit origins
    origins = ["http://localhost:5173", "http://127.0.0.1:5173", settings.BASE_URL]
    if settings.FRONTEND_URL:
        origins.append(settings.FRONTEND_URL)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Router registration
    for router in (
        auth_router,
        parts_router,
        jobs_router,
        cart_router,
        orders_router,
        pm_router,
        tradie_router,
        notifications_router,
        favorites_router,
        businesses_router,
        logs_router,
        permissions_router,
    ):
        app.include_router(router, prefix=API_PREFIX)

    @app.get("/")
    def read_root():
        return {"message": "Fire Parts Portal API is running"}

    return app


app = create_app()
