import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .config import LOG_LEVEL
from .database import create_db_and_tables
from .routers import gifts, challenges, approvals, webhooks
from .services.errors import (
    GiftServiceError, NotFoundError, InvalidTransitionError,
    SubmissionPendingError, PermissionDeniedError
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Honey Badger AI Gifts")

origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    NotFoundError: 404,
    PermissionDeniedError: 403,
    InvalidTransitionError: 409,
    SubmissionPendingError: 409,
}

@app.exception_handler(GiftServiceError)
async def gift_service_error_handler(request: Request, exc: GiftServiceError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    logger.info("%s %s -> %s: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})

@app.get("/")
async def root():
    return {"message": "Honey Badger AI Gifts API"}

@app.get("/health")
async def health():
    return {"status": "OK"}

app.include_router(gifts.router)
app.include_router(challenges.router)
app.include_router(approvals.router)
app.include_router(webhooks.router)

@app.on_event("startup")
def on_startup():
    create_db_and_tables()
