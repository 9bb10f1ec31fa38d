#!/usr/bin/env python3
"""
Analytics Report Script

Prints a snapshot of tok.box usage from the analyses table: headline counts,
mood and grade breakdowns, the latest analyses, registered users, and the
email leads for one mood.

Usage:
    python check_analytics.py
    python check_analytics.py --mood thirst --recent 20

Prerequisites:
    - DATABASE_URL set in .env (or the default local SQLite file exists)
"""

import argparse
import logging
import sys
from typing import Any, Dict, Optional

from tokbox.database.repositories.analysis_repository import AnalysisRepository

logger = logging.getLogger(__name__)

DEFAULT_LEAD_MOOD = "thirst"


def setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('check_analytics.log'),
            logging.StreamHandler(sys.stdout)
        ]
    )


class AnalyticsReport:
    """Collects the usage snapshot from the analyses table"""

    def __init__(self, repository: Optional[AnalysisRepository] = None):
        self.repository = repository or AnalysisRepository()

    def build(self, lead_mood: str = DEFAULT_LEAD_MOOD, recent_limit: int = 10) -> Dict[str, Any]:
        logger.info("📊 Collecting analytics...")
        report = {
            "overview": self.repository.get_usage_overview(),
            "by_mood": self.repository.get_breakdown("mood"),
            "by_grade": self.repository.get_breakdown("grade"),
            "recent": self.repository.get_recent_analyses(recent_limit),
            "registered_users": self.repository.get_registered_users(),
            "lead_mood": lead_mood,
            "leads": self.repository.get_mood_leads(lead_mood),
        }
        logger.info(f"✅ Analytics collected: {report['overview']['total_analyses']} analyses")
        return report


def print_report(report: Dict[str, Any]):
    overview = report["overview"]

    print("=" * 60)
    print("📊 TOK.BOX ANALYTICS")
    print("=" * 60)
    print(f"Total analyses: {overview['total_analyses']}")
    print(f"Unique registered users: {overview['unique_users']}")
    print(f"Anonymous analyses: {overview['anonymous_analyses']}")
    print(f"Unique anonymous IPs: {overview['unique_anonymous_ips']}")

    print("\n🎭 By mood:")
    for row in report["by_mood"]:
        print(f"  {row['value']}: {row['count']}")

    print("\n🏅 By grade:")
    for row in report["by_grade"]:
        print(f"  {row['value']}: {row['count']}")

    print(f"\n🕒 Last {len(report['recent'])} analyses:")
    for row in report["recent"]:
        print(f"  #{row['id']} {row['user_email']} | {row['mood']} | "
              f"grade {row['grade'] or '-'} | viral {row['viral_score'] if row['viral_score'] is not None else '-'} | "
              f"{row['created_at']}")

    print(f"\n👤 Registered users ({len(report['registered_users'])}):")
    for row in report["registered_users"]:
        print(f"  {row['user_email']}: {row['analysis_count']} analyses, last {row['last_analysis']}")

    print(f"\n🔥 {report['lead_mood']} leads ({len(report['leads'])}):")
    for row in report["leads"]:
        print(f"  {row['user_email']}: {row['analysis_count']} analyses, last {row['last_analysis']}")

    print("=" * 60)


def main():
    """Main function to run the analytics report"""
    parser = argparse.ArgumentParser(description="tok.box usage analytics")
    parser.add_argument("--mood", default=DEFAULT_LEAD_MOOD, help="Mood to list email leads for")
    parser.add_argument("--recent", type=int, default=10, help="How many recent analyses to show")
    args = parser.parse_args()

    setup_logging()

    try:
        report = AnalyticsReport().build(lead_mood=args.mood, recent_limit=args.recent)
    except Exception as e:
        logger.error(f"❌ Analytics report failed: {e}")
        print("📋 Check the log file 'check_analytics.log' for detailed error information")
        sys.exit(1)

    print_report(report)


if __name__ == "__main__":
    main()
