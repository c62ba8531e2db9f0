import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import uvicorn
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from config import settings
from database import create_db_and_tables
from premium.auth.router import router as auth_router
from premium.billing.gateway import StripeGateway
from premium.billing.router import router as billing_router
from premium.billing.webhook_router import router as webhook_router
from premium.core.errors import AppError

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    app.state.billing_gateway = StripeGateway.from_settings(settings)
    yield

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Middlewares
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    max_age=settings.SESSION_TTL_SECONDS,
    https_only=settings.is_production,
    same_site="lax",
)

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

# Routers
app.include_router(auth_router)
app.include_router(billing_router)
app.include_router(webhook_router)

@app.get("/api/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
