import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from fleet_maintenance.config import settings
from fleet_maintenance.database import check_db_connection
from fleet_maintenance.utils.exceptions import AppException
from fleet_maintenance.middleware.error_handler import (
    app_exception_handler,
    validation_exception_handler,
    integrity_error_handler,
    generic_exception_handler,
)

from fleet_maintenance.api.v1 import maintenance_types
from fleet_maintenance.api.v1 import equipments
from fleet_maintenance.api.v1 import maintenance_records
from fleet_maintenance.api.v1 import mileage_records
from fleet_maintenance.api.v1 import catalog
from fleet_maintenance.api.v1 import associations
from fleet_maintenance.api.v1 import maintenance_plans

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=VERSION,
        description="Fleet maintenance tracking API: maintenance type taxonomy, equipments, "
                    "maintenance records with activities and spare parts, mileage logs, "
                    "maintenance plans and their stages",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # ─── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ─── Exception Handlers ───────────────────────────────────────────────────
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # ─── Routers ──────────────────────────────────────────────────────────────
    PREFIX = "/api/v1"
    app.include_router(maintenance_types.router,   prefix=PREFIX, tags=["Maintenance Types"])
    app.include_router(equipments.router,          prefix=PREFIX, tags=["Equipments"])
    app.include_router(maintenance_records.router, prefix=PREFIX, tags=["Maintenance Records"])
    app.include_router(mileage_records.router,     prefix=PREFIX, tags=["Mileage Records"])
    app.include_router(catalog.router,             prefix=PREFIX, tags=["Catalog"])
    app.include_router(associations.router,        prefix=PREFIX, tags=["Maintenance Associations"])
    app.include_router(maintenance_plans.router,   prefix=PREFIX, tags=["Maintenance Plans"])

    # ─── Startup ──────────────────────────────────────────────────────────────
    @app.on_event("startup")
    def on_startup():
        ok = check_db_connection()
        logger.info("DB connected" if ok else "DB connection FAILED")

    # ─── Health ───────────────────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "ok", "app": settings.APP_NAME, "version": VERSION}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("fleet_maintenance.main:app", host=settings.APP_HOST, port=settings.APP_PORT,
                reload=settings.is_development)
