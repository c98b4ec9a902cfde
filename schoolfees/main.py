from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolfees.api.v1.balances.router import router as balances_router
from schoolfees.api.v1.dashboard.router import router as dashboard_router
from schoolfees.api.v1.fees.router import router as fees_router
from schoolfees.api.v1.grades.router import router as grades_router
from schoolfees.api.v1.parents.router import router as parents_router
from schoolfees.api.v1.payments.router import router as payments_router
from schoolfees.api.v1.pupils.router import router as pupils_router
from schoolfees.core.config import settings
from schoolfees.core.log_config import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="School Fees Ledger")

    # CORS: the dashboard frontend calls this API directly
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(grades_router)
    app.include_router(parents_router)
    app.include_router(pupils_router)
    app.include_router(fees_router)
    app.include_router(payments_router)
    app.include_router(balances_router)
    app.include_router(dashboard_router)

    return app


app = create_app()
