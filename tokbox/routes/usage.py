import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from tokbox.models.analysis import Identity
from tokbox.services.usage_gateway import UsageGateway
from tokbox.utils.identity import get_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Usage"])

_usage_gateway: Optional[UsageGateway] = None


def get_usage_gateway() -> UsageGateway:
    global _usage_gateway
    if _usage_gateway is None:
        _usage_gateway = UsageGateway()
    return _usage_gateway


@router.get("/check-usage")
async def check_usage(
    identity: Identity = Depends(get_identity),
    gateway: UsageGateway = Depends(get_usage_gateway),
) -> Dict[str, Any]:
    """Whether the caller can run another analysis, for the upload page banner"""
    return gateway.status(identity)
