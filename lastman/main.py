import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lastman.database import init_db
from lastman.routes import fixtures, leagues, notifications, participants, rounds, selections

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Last Man Standing League API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(leagues.router, prefix="/api", tags=["leagues"])
app.include_router(rounds.router, prefix="/api", tags=["rounds"])
app.include_router(fixtures.router, prefix="/api", tags=["fixtures"])
app.include_router(selections.router, prefix="/api", tags=["selections"])
app.include_router(participants.router, prefix="/api", tags=["participants"])
app.include_router(notifications.router, prefix="/api", tags=["notifications"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("Database initialized")


@app.get("/health")
def health():
    return {"status": "ok"}
