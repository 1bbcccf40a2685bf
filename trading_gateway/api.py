"""
Trading Gateway - HTTP API.

============================================================
RESPONSIBILITY
============================================================
Serves TradingGateway.dispatch over HTTP for browser and
backend callers.

    POST /          {"action": ..., ...} -> envelope
    POST /gateway   same as POST /
    GET  /health    liveness
    GET  /status    configuration and limiter statistics
    GET  /actions   supported actions
============================================================
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import ErrorCategory, get_error_info
from .gateway import TradingGateway

logger = logging.getLogger(__name__)


# ============================================================
# Models
# ============================================================

class GatewayRequest(BaseModel):
    """Action request. Parameters ride alongside the action name."""
    action: str

    class Config:
        extra = "allow"


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"
    uptime_seconds: float = 0


# ============================================================
# Gateway instance
# ============================================================

_gateway: Optional[TradingGateway] = None


def get_gateway() -> TradingGateway:
    """Process-wide gateway, created on first request."""
    global _gateway
    if _gateway is None:
        _gateway = TradingGateway.from_env()
    return _gateway


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Gateway API shutting down")
    if _gateway is not None:
        await _gateway.disconnect()


# Anything not listed is an upstream failure (502)
_CATEGORY_STATUS = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.CONFIGURATION: 500,
    ErrorCategory.INTERNAL: 500,
}

# Authentication faults in the local key, not at the exchange
_LOCAL_AUTH_PREFIXES = ("KEY_", "AUT_SIGNING")


def http_status_for(envelope: Dict[str, Any]) -> int:
    """HTTP status for a dispatch envelope."""
    if envelope.get("success") or envelope.get("outcome"):
        return 200
    code = envelope.get("code")
    if not code:
        return 200
    if code.startswith(_LOCAL_AUTH_PREFIXES):
        return 500
    return _CATEGORY_STATUS.get(get_error_info(code).category, 502)


# ============================================================
# FastAPI Application
# ============================================================

app = FastAPI(
    title="Exchange Trading Gateway",
    description="Authenticated, rate-limited access to exchange trading",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_startup_time = datetime.now(timezone.utc)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    now = datetime.now(timezone.utc)
    return HealthResponse(
        status="healthy",
        timestamp=now.isoformat(),
        uptime_seconds=(now - _startup_time).total_seconds(),
    )


@app.get("/status", tags=["Health"])
async def gateway_status(gateway: TradingGateway = Depends(get_gateway)) -> Dict[str, Any]:
    """Configuration and outbound rate limiter statistics."""
    return gateway.status()


@app.get("/actions", tags=["Gateway"])
async def list_actions(gateway: TradingGateway = Depends(get_gateway)) -> Dict[str, List[str]]:
    return {"actions": gateway.actions}


@app.post("/", tags=["Gateway"])
@app.post("/gateway", tags=["Gateway"])
async def dispatch(
    request: GatewayRequest,
    gateway: TradingGateway = Depends(get_gateway),
):
    """Run one gateway action."""
    envelope = await gateway.dispatch(request.model_dump())
    return JSONResponse(status_code=http_status_for(envelope), content=envelope)
