"""Static plan limits. Referenced at check time against live counts, never stored per user."""

USAGE_LIMITS = {
    "anonymous": {
        "total_analyses": 1,  # per IP address
        "premium_analyses": 1,
    },
    "free": {
        "total_analyses": 1,
        "premium_analyses": 1,  # All free analyses are premium
    },
    "creator": {
        "monthly_analyses": 30,
        "premium_analyses": 20,  # Switch to fast after 20
    },
    "pro": {
        "daily_analyses": 5,
        "monthly_analyses": 150,  # 5/day * 30 days
        "premium_analyses": 50,  # Switch to fast after 50
    },
}
