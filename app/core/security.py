from fastapi import Request
import hashlib
import hmac

from app.core.config import AUDIT_LOG_HMAC_KEY


def compute_hmac(data: str, key: str = AUDIT_LOG_HMAC_KEY) -> str:
    """Compute HMAC for data integrity"""
    return hmac.new(key.encode(), data.encode(), hashlib.sha256).hexdigest()


def verify_hmac(data: str, expected_hmac: str, key: str = AUDIT_LOG_HMAC_KEY) -> bool:
    """Verify HMAC for data integrity"""
    computed_hmac = compute_hmac(data, key)
    return hmac.compare_digest(computed_hmac, expected_hmac)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def anonymize_ip(ip: str) -> str:
    """Mask the host part of an address before it reaches the audit log.

    IPv4 keeps the first three octets (192.168.1.100 -> 192.168.1.0),
    IPv6 keeps the first four groups (2001:db8:85a3:0:... -> 2001:db8:85a3:0::1).
    """
    if not ip or ip == "unknown":
        return ip

    if "." in ip:
        parts = ip.split(".")
        if len(parts) == 4:
            return f"{parts[0]}.{parts[1]}.{parts[2]}.0"
        return ip

    if ":" in ip:
        segments = ip.split(":")
        return ":".join(segments[:4]) + "::1"

    return ip


def request_audit_meta(request: Request) -> dict:
    """Client details recorded with every audit event"""
    return {
        "ip_address": anonymize_ip(get_client_ip(request)),
        "user_agent": request.headers.get("user-agent"),
    }
