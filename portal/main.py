from __future__ import annotations

from fastapi import FastAPI

from portal.routes import api_router
from portal.startup import configure_logging, init_database

app = FastAPI(title="learnportal")


@app.on_event("startup")
def startup() -> None:
    configure_logging()
    init_database()


app.include_router(api_router)
