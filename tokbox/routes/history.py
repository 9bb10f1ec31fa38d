"""
Analysis History Endpoint
=========================

GET /api/history             -> the caller's analyses, newest first
GET /api/history?id=<id>     -> one analysis with its stored results
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from tokbox.database.repositories.analysis_repository import AnalysisRepository
from tokbox.models.analysis import Identity
from tokbox.utils.identity import get_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["History"])

DEFAULT_HISTORY_LIMIT = 50


def get_analysis_repository() -> AnalysisRepository:
    return AnalysisRepository()


def history_limit(limit: Optional[int]) -> int:
    """Missing or zero means the default; anything else is at least 1"""
    if not limit:
        return DEFAULT_HISTORY_LIMIT
    return max(1, limit)


def _iso(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value


def history_entry(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "mood": row["mood"],
        "grade": row["grade"],
        "viralScore": row["viral_score"],
        "createdAt": _iso(row["created_at"]),
        "hasResults": bool(row.get("results_json")),
    }


def analysis_detail(row: Dict[str, Any]) -> Dict[str, Any]:
    """Stored row with the results blob parsed back into the client payload"""
    results = None
    if row.get("results_json"):
        try:
            results = json.loads(row["results_json"])
        except ValueError as e:
            logger.warning(f"⚠️ Stored results for analysis {row['id']} are not valid JSON: {e}")

    return {
        "id": row["id"],
        "mood": row["mood"],
        "grade": row["grade"],
        "viralScore": row["viral_score"],
        "createdAt": _iso(row["created_at"]),
        "modelUsed": row.get("model_used"),
        "videoDurationSeconds": row.get("video_duration_seconds"),
        "videoUrl": row.get("video_url"),
        "results": results,
    }


@router.get("/history")
async def get_history(
    id: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    identity: Identity = Depends(get_identity),
    repository: AnalysisRepository = Depends(get_analysis_repository),
):
    """History list, or a single analysis when id is given"""
    if not identity.is_authenticated:
        return JSONResponse(status_code=401, content={"error": "Authentication required"})

    if id is not None:
        row = repository.get_analysis_by_id(id, identity.user_id)
        if not row:
            return JSONResponse(status_code=404, content={"error": "Analysis not found"})
        return {"analysis": analysis_detail(row)}

    rows = repository.get_user_analysis_history(identity.user_id, history_limit(limit))
    return {"history": [history_entry(row) for row in rows]}
