import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolfees.api.v1.academic_years.router import router as academic_years_router
from schoolfees.api.v1.classes.router import router as classes_router
from schoolfees.api.v1.fee_configurations.router import router as fee_configurations_router
from schoolfees.api.v1.fee_installments.router import router as fee_installments_router
from schoolfees.api.v1.students.router import router as students_router
from schoolfees.core.config import settings


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="School Fees Backend")

    # CORS_ORIGINS is a comma separated list; unset means allow all
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(academic_years_router)
    app.include_router(classes_router)
    app.include_router(students_router)
    app.include_router(fee_configurations_router)
    app.include_router(fee_installments_router)

    return app


app = create_app()
