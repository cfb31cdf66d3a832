from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from typing import Callable, Optional
import logging
import time
import uvicorn

from app.core.config import PROJECT_NAME, ALLOW_ORIGINS, ENVIRONMENT, PORT, TOTP_ISSUER, MFA_SESSION_TTL
from app.core.jwt_session_manager import JWTSessionManager
from app.core.memory_rate_limiter import MemoryRateLimiter
from app.core.ttl_cache import TTLCache
from app.routers import two_factor_router
from app.services.crypto import EnvelopeCipher

logger = logging.getLogger(__name__)


def create_app(
    cipher: Optional[EnvelopeCipher] = None,
    session_manager: Optional[JWTSessionManager] = None,
    mfa_sessions: Optional[TTLCache] = None,
    rate_limiter: Optional[MemoryRateLimiter] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    # Building the cipher here makes a missing or short TOTP_ENCRYPTION_KEY
    # stop the process before it serves anything
    if cipher is None:
        cipher = EnvelopeCipher.from_config()

    app = FastAPI(title=PROJECT_NAME, description="Two-factor authentication service for the SnarkHealth dashboard")

    app.state.cipher = cipher
    app.state.session_manager = session_manager if session_manager is not None else JWTSessionManager()
    app.state.mfa_sessions = mfa_sessions if mfa_sessions is not None else TTLCache(MFA_SESSION_TTL.total_seconds())
    app.state.rate_limiter = rate_limiter if rate_limiter is not None else MemoryRateLimiter()
    app.state.totp_issuer = TOTP_ISSUER
    app.state.clock = clock

    # CORS Middleware - Allows cross-origin requests from the dashboard front end
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"  # Prevents MIME sniffing attacks
        response.headers["X-Frame-Options"] = "DENY"  # Prevents clickjacking by blocking iframe embedding
        response.headers["Cache-Control"] = "no-store"  # provisioning URIs carry the secret
        return response

    app.include_router(two_factor_router.router, prefix="/api/auth/2fa", tags=["Two-Factor Authentication"])

    @app.get("/")
    async def root():
        return {"message": f"{PROJECT_NAME} is running."}

    return app


app = create_app()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn_config = {
        "app": "app.main:app",
        "host": "0.0.0.0",
        "port": PORT,
        "reload": ENVIRONMENT == "development",
        "forwarded_allow_ips": "*"
    }
    uvicorn.run(**uvicorn_config)
