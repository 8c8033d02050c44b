import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import LOG_LEVEL
from app.core.exceptions import ServiceError
from app.db.base import Base, engine
from app.api.routes import bookings as bookings_router
from app.api.routes import notifications as notifications_router
from app.api.routes import payments as payments_router
from app.api.routes import review as review_router
from app.api.routes import search as search_router
from app.db.models import notification  # noqa: F401 - register tables

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine)
    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Service Marketplace API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} refused ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": exc.message})


@app.get("/")
def root():
    return {"message": "Service Marketplace API running"}


app.include_router(bookings_router.router)
app.include_router(payments_router.router)
app.include_router(review_router.router)
app.include_router(search_router.router)
app.include_router(notifications_router.router)
