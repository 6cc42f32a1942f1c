from fastapi import FastAPI

from .config import get_settings
from .logging_config import configure_logging
from .routers import jobs_router, send_router, reference_router

configure_logging(get_settings().log_level)

app = FastAPI(title="SES Hospedajes Registration Service")
app.include_router(jobs_router)
app.include_router(send_router)
app.include_router(reference_router)


@app.get("/")
def root():
    return {"status": "ok"}
