from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.orm import Session

from tokbox.database.connection import get_db_session, utc_now

logger = logging.getLogger(__name__)

# Columns the analytics report may group by
BREAKDOWN_COLUMNS = ("mood", "grade")


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def day_start(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class AnalysisRepository:
    """Repository for analysis rows: tracking, history and the counts behind quota checks.

    Count methods let database errors propagate so the usage gateway can apply
    its failure policy; read methods for display log and return empty results.
    Analytics reads propagate errors to the reporting script.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or get_db_session

    def track_analysis(
        self,
        mood: str,
        model_used: str,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        ip_address: Optional[str] = None,
        video_duration_seconds: Optional[float] = None,
        grade: Optional[str] = None,
        viral_score: Optional[float] = None,
        results_json: Optional[str] = None,
        video_url: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Insert a new analysis row and return its id"""
        query = text("""
            INSERT INTO analyses (
                user_id, user_email, ip_address, mood, video_duration_seconds,
                grade, viral_score, created_at, model_used, results_json, video_url
            )
            VALUES (
                :user_id, :user_email, :ip_address, :mood, :video_duration_seconds,
                :grade, :viral_score, :created_at, :model_used, :results_json, :video_url
            )
            RETURNING id
        """).bindparams(bindparam("created_at", type_=DateTime()))

        params = {
            "user_id": user_id,
            "user_email": user_email,
            "ip_address": ip_address,
            "mood": mood,
            "video_duration_seconds": video_duration_seconds,
            "grade": grade,
            "viral_score": viral_score,
            "created_at": created_at or utc_now(),
            "model_used": model_used,
            "results_json": results_json,
            "video_url": video_url,
        }

        try:
            with self._session_factory() as db:
                row = db.execute(query, params).fetchone()
                db.commit()
                return int(row.id)
        except Exception as e:
            logger.error(f"Failed to track analysis: {e}")
            raise

    def get_user_analysis_history(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Get a user's analyses, newest first"""
        query = text("""
            SELECT id, mood, grade, viral_score, created_at, results_json, video_url
            FROM analyses
            WHERE user_id = :user_id
            ORDER BY created_at DESC, id DESC
            LIMIT :limit
        """).columns(created_at=DateTime())

        try:
            with self._session_factory() as db:
                rows = db.execute(query, {"user_id": user_id, "limit": limit}).fetchall()
            return [dict(row._mapping) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get analysis history: {e}")
            return []

    def get_analysis_by_id(self, analysis_id: int, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a single analysis, only if it belongs to the given user"""
        query = text("""
            SELECT id, user_id, user_email, ip_address, mood, video_duration_seconds,
                   grade, viral_score, created_at, model_used, results_json, video_url
            FROM analyses
            WHERE id = :analysis_id AND user_id = :user_id
        """).columns(created_at=DateTime())

        try:
            with self._session_factory() as db:
                row = db.execute(query, {"analysis_id": analysis_id, "user_id": user_id}).fetchone()
            return dict(row._mapping) if row else None
        except Exception as e:
            logger.error(f"Failed to get analysis by ID: {e}")
            return None

    def has_ip_used_free_analysis(self, ip_address: str) -> bool:
        """Check if an anonymous caller from this IP already used the free analysis"""
        query = text("""
            SELECT COUNT(*) AS count FROM analyses
            WHERE ip_address = :ip_address AND user_id IS NULL
        """)
        return self._count(query, {"ip_address": ip_address}) > 0

    def count_total(self, user_id: str) -> int:
        query = text("SELECT COUNT(*) AS count FROM analyses WHERE user_id = :user_id")
        return self._count(query, {"user_id": user_id})

    def count_monthly(self, user_id: str, now: Optional[datetime] = None) -> int:
        query = text("""
            SELECT COUNT(*) AS count FROM analyses
            WHERE user_id = :user_id AND created_at >= :since
        """).bindparams(bindparam("since", type_=DateTime()))
        since = month_start(now or utc_now())
        return self._count(query, {"user_id": user_id, "since": since})

    def count_daily(self, user_id: str, now: Optional[datetime] = None) -> int:
        query = text("""
            SELECT COUNT(*) AS count FROM analyses
            WHERE user_id = :user_id AND created_at >= :since
        """).bindparams(bindparam("since", type_=DateTime()))
        since = day_start(now or utc_now())
        return self._count(query, {"user_id": user_id, "since": since})

    def count_monthly_premium(self, user_id: str, now: Optional[datetime] = None) -> int:
        """Premium-model analyses this month (drives the fast-model switch)"""
        query = text("""
            SELECT COUNT(*) AS count FROM analyses
            WHERE user_id = :user_id
              AND model_used = 'premium'
              AND created_at >= :since
        """).bindparams(bindparam("since", type_=DateTime()))
        since = month_start(now or utc_now())
        return self._count(query, {"user_id": user_id, "since": since})

    def get_mood_leads(self, mood: str) -> List[Dict[str, Any]]:
        """Signed-in users with an email who analysed videos with the given mood"""
        query = text("""
            SELECT user_id, user_email, COUNT(*) AS analysis_count, MAX(created_at) AS last_analysis
            FROM analyses
            WHERE mood = :mood AND user_email IS NOT NULL
            GROUP BY user_id, user_email
            ORDER BY last_analysis DESC
        """)

        try:
            with self._session_factory() as db:
                rows = db.execute(query, {"mood": mood}).fetchall()
            return [dict(row._mapping) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get leads for mood {mood}: {e}")
            return []

    def get_usage_overview(self) -> Dict[str, int]:
        """Headline counts across every analysis: totals, signed-in users and anonymous traffic"""
        query = text("""
            SELECT COUNT(*) AS total_analyses,
                   COUNT(DISTINCT user_id) AS unique_users,
                   SUM(CASE WHEN user_id IS NULL THEN 1 ELSE 0 END) AS anonymous_analyses,
                   COUNT(DISTINCT CASE WHEN user_id IS NULL THEN ip_address END) AS unique_anonymous_ips
            FROM analyses
        """)
        with self._session_factory() as db:
            row = db.execute(query).fetchone()
        return {key: int(value or 0) for key, value in row._mapping.items()}

    def get_breakdown(self, column: str) -> List[Dict[str, Any]]:
        """Analysis counts grouped by mood or grade, most common first"""
        if column not in BREAKDOWN_COLUMNS:
            raise ValueError(f"Cannot break analyses down by {column}. Available: {list(BREAKDOWN_COLUMNS)}")

        query = text(f"""
            SELECT {column} AS value, COUNT(*) AS count
            FROM analyses
            WHERE {column} IS NOT NULL
            GROUP BY {column}
            ORDER BY count DESC, value
        """)
        with self._session_factory() as db:
            rows = db.execute(query).fetchall()
        return [dict(row._mapping) for row in rows]

    def get_recent_analyses(self, limit: int = 10) -> List[Dict[str, Any]]:
        query = text("""
            SELECT id, COALESCE(user_email, 'anonymous') AS user_email, mood, grade, viral_score, created_at
            FROM analyses
            ORDER BY created_at DESC, id DESC
            LIMIT :limit
        """).columns(created_at=DateTime())
        with self._session_factory() as db:
            rows = db.execute(query, {"limit": limit}).fetchall()
        return [dict(row._mapping) for row in rows]

    def get_registered_users(self) -> List[Dict[str, Any]]:
        """Signed-in users with an email, heaviest users first"""
        query = text("""
            SELECT user_id, user_email, COUNT(*) AS analysis_count, MAX(created_at) AS last_analysis
            FROM analyses
            WHERE user_id IS NOT NULL AND user_email IS NOT NULL
            GROUP BY user_id, user_email
            ORDER BY analysis_count DESC, last_analysis DESC
        """)
        with self._session_factory() as db:
            rows = db.execute(query).fetchall()
        return [dict(row._mapping) for row in rows]

    def _count(self, query, params: Dict[str, Any]) -> int:
        with self._session_factory() as db:
            result = db.execute(query, params).fetchone()
        return int(result.count or 0) if result else 0
