import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from .config import settings
from .logging_config import setup_logging
from .api.routes_health import router as health_router
from .api.routes_contacts import router as contacts_router
from .api.routes_conversations import router as conversations_router
from .api.routes_realtime_ws import router as realtime_ws_router
from .models import create_all
from .services.errors import InvalidOperationError, NotFoundError

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Chatly Inbox API",
    version="1.0.0",
    description="Multi-tenant inbox backend: leads, linked contacts across channels, conversations and a realtime change feed."
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router)
app.include_router(contacts_router)
app.include_router(conversations_router)
app.include_router(realtime_ws_router)

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(InvalidOperationError)
async def invalid_operation_handler(request: Request, exc: InvalidOperationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})

# Database setup on startup
@app.on_event("startup")
def startup():
    logger.info("Starting Chatly Inbox API (env=%s)", settings.ENV)
    # Auto-create tables if they don't exist
    try:
        create_all()
    except OperationalError as e:
        raise RuntimeError("Database connection failed. Check DATABASE_URL and credentials.") from e

# Base route
@app.get("/")
def root():
    return {
        "name": "Chatly Inbox API",
        "env": settings.ENV,
        "status": "running",
        "docs_url": "/docs"
    }
