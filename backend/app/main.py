# Guardian-link approval service: FastAPI entrypoint.

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api import guardian_links
from backend.app.api import link_incidents
from backend.app.api import link_retention
from backend.app.api import login
from backend.app.core.dev_seed import ensure_default_dev_admin
from backend.app.core.errors import GuardianLinkError
from backend.app.core.settings import get_settings
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(login.router)
app.include_router(guardian_links.router)
app.include_router(link_incidents.router)
app.include_router(link_retention.router)
app.include_router(link_retention.admin_router)


@app.exception_handler(GuardianLinkError)
async def handle_guardian_link_error(request: Request, exc: GuardianLinkError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.get("/")
def read_root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def seed_default_dev_admin():
    if settings.environment != "development":
        return
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_default_dev_admin(db)
    finally:
        db.close()
