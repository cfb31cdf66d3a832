import os
import secrets
from datetime import timedelta
from dotenv import load_dotenv
from typing import Dict, List, Tuple

# Load environment variables from .env file
load_dotenv()

# Server settings
PROJECT_NAME: str = "SnarkHealth 2FA"
PORT: int = int(os.getenv("PORT", 3010))

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

# Validate required production settings
if ENVIRONMENT == "production":
    required_vars = ['DATABASE_URL', 'SECRET_KEY', 'TOTP_ENCRYPTION_KEY', 'AUDIT_LOG_HMAC_KEY']
    missing_vars = [var for var in required_vars if not os.getenv(var)]
    if missing_vars:
        raise ValueError(f"Missing required environment variables for production: {missing_vars}")

# Database URL
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./snarkhealth.db")

# Upper bound for any single database call (connect, lock wait, statement)
DB_TIMEOUT_SECONDS: int = int(os.getenv("DB_TIMEOUT_SECONDS", "5"))

# TOTP settings
# The master key protects every stored TOTP seed. It must be at least 32 bytes;
# shorter keys are rejected at start-up rather than padded.
TOTP_ENCRYPTION_KEY: str = os.getenv("TOTP_ENCRYPTION_KEY", "")
TOTP_ISSUER: str = os.getenv("TOTP_ISSUER", "SnarkHealth Dashboard")

# JWT settings
SECRET_KEY: str = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# How long a successful 2FA verification is remembered for a session
MFA_SESSION_TTL: timedelta = timedelta(minutes=int(os.getenv("MFA_SESSION_TTL_MINUTES", "30")))

# Audit Log HMAC Key for integrity protection
AUDIT_LOG_HMAC_KEY: str = os.getenv("AUDIT_LOG_HMAC_KEY", secrets.token_urlsafe(32))

# Rate limiting configuration - (max_attempts, window_seconds)
RATE_LIMITS: Dict[str, Tuple[int, int]] = {
    "totp": (5, 300),       # 5 verification attempts per 5 minutes
    "enable": (3, 3600),    # 3 enrolments per hour
}

# Default rate limit for unknown actions - (max_attempts, window_seconds)
DEFAULT_RATE_LIMIT: Tuple[int, int] = (10, 600)  # 10 attempts per 10 minutes

# CORS settings
if ENVIRONMENT == "production":
    ALLOW_ORIGINS: List[str] = [
        "https://dashboard.snarkhealth.com",
    ]
else:
    ALLOW_ORIGINS = [
        "http://localhost:3000",              # Local development
        "https://dashboard.snarkhealth.com",
    ]
