"""
Caller identity from the auth layer in front of this service.

Authentication happens upstream; the proxy injects the verified user id,
email and plan as headers. Requests without a user id are anonymous and are
keyed by client IP.
"""

import logging
from typing import Optional

from fastapi import Request

from tokbox.models.analysis import UNKNOWN_IP, Identity, PlanTier

logger = logging.getLogger(__name__)

USER_ID_HEADER = "x-user-id"
USER_EMAIL_HEADER = "x-user-email"
USER_PLAN_HEADER = "x-user-plan"


def client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def parse_plan(value: Optional[str]) -> PlanTier:
    """Signed-in users without a recognised paid plan are on free"""
    try:
        plan = PlanTier((value or "").strip().lower())
    except ValueError:
        return PlanTier.FREE
    return PlanTier.FREE if plan == PlanTier.ANONYMOUS else plan


def get_identity(request: Request) -> Identity:
    """FastAPI dependency resolving the caller"""
    ip_address = client_ip(request) or UNKNOWN_IP
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        return Identity(ip_address=ip_address)

    return Identity(
        user_id=user_id,
        email=request.headers.get(USER_EMAIL_HEADER) or None,
        plan=parse_plan(request.headers.get(USER_PLAN_HEADER)),
        ip_address=ip_address,
    )
