import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ehr.config import HOST, LOG_LEVEL, PORT
from ehr.database import close_db, init_db
from ehr.errors import AuthorizationError, EHRError
from ehr.routers import (
    appointments,
    lab_results,
    medical_records,
    patients,
    prescriptions,
    session,
    staff,
    vitals,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Chitungwiza Hospital EHR...")
    await init_db()
    logger.info("Database initialized")
    yield
    await close_db()
    logger.info("Chitungwiza Hospital EHR shut down")


app = FastAPI(
    title="Chitungwiza Hospital EHR",
    description="Role-gated patient, appointment, clinical record and lab management",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(session.router)
app.include_router(staff.router)
app.include_router(patients.router)
app.include_router(appointments.router)
app.include_router(medical_records.router)
app.include_router(vitals.router)
app.include_router(prescriptions.router)
app.include_router(lab_results.router)


@app.exception_handler(EHRError)
async def handle_ehr_error(request: Request, exc: EHRError) -> JSONResponse:
    if isinstance(exc, AuthorizationError):
        # Same body for every denial, whether or not the row exists
        return JSONResponse(status_code=exc.status_code, content={"detail": AuthorizationError.public_message})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "field": exc.field})


@app.get("/health")
async def health():
    return {"status": "ok"}


def run() -> None:
    """Serve the API with uvicorn (the ``ehr-server`` console script)."""
    uvicorn.run("ehr.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
