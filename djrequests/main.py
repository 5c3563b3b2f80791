import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from djrequests.config import get_settings
from djrequests.errors import DomainError
from djrequests.routers import analytics, auth, blocklist, events, realtime, requests

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="DJ Requests API",
    version="1.0.0",
    description="Live song request queue for DJ events",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        message = "Internal server error"
    else:
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message, "code": exc.code.value},
    )


# Include routers
app.include_router(auth.router)
app.include_router(events.router)
app.include_router(requests.router)
app.include_router(analytics.router)
app.include_router(blocklist.router)
app.include_router(realtime.router)


@app.get("/")
def read_root():
    return {"message": "DJ Requests API", "status": "running"}
