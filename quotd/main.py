import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Both model modules must be imported before create_all so Job.appointments resolves
from . import models, models_appointment  # noqa: F401
from .database import Base, engine
from .domain.scheduling.router import cron_router
from .domain.scheduling.router import router as dispatch_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

DISPATCH_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("DISPATCH_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("✅ Dispatch tables ready")
    yield


app = FastAPI(title="Quotd Dispatch API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=DISPATCH_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(dispatch_router)
app.include_router(cron_router)


@app.get("/health")
def health():
    return {"status": "healthy"}
