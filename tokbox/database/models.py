
from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text

from tokbox.database.connection import Base, utc_now


class Analysis(Base):
    """One completed analysis. Insert-only; quota counts are derived from these rows."""

    __tablename__ = "analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=True)
    user_email = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    mood = Column(String, nullable=False)
    video_duration_seconds = Column(Float, nullable=True)
    grade = Column(String, nullable=True)
    viral_score = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    model_used = Column(String, nullable=False, default="premium")
    results_json = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_analyses_user_id", "user_id"),
        Index("idx_analyses_mood", "mood"),
        Index("idx_analyses_ip", "ip_address"),
    )
