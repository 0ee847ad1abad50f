# wipflow/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .database import create_db_and_tables
from .seed_data import seed_demo_data
from .services.errors import InvalidInput, NotFound, SoftOvershoot, StructureLocked

from .api import production as production_api
from .api import tasks as tasks_api
from .api import warehouse as warehouse_api
from .api import projects as projects_api
from .api import data as data_api


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="WIP Stock Engine")

# Include API routers
app.include_router(production_api.router)
app.include_router(tasks_api.router)
app.include_router(warehouse_api.router)
app.include_router(projects_api.router)
app.include_router(data_api.router)


# Engine failures -> HTTP status codes

@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc), "kind": exc.kind})


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StructureLocked)
async def structure_locked_handler(request: Request, exc: StructureLocked):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(SoftOvershoot)
async def overshoot_handler(request: Request, exc: SoftOvershoot):
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "requested": exc.requested,
            "ready": exc.ready,
            "confirm_with": "confirm_overshoot",
        },
    )


@app.on_event("startup")
def startup_event():
    create_db_and_tables()
    if settings.seed_demo:
        seed_demo_data()


@app.get("/")
def root():
    return {"service": "wipflow", "docs": "/docs"}
