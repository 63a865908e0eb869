# socialconnect/utils/plan/limits_map.py

UNLIMITED = -1

DEFAULT_PLAN = "FREE"

# max_social_accounts_per_platform is counted per brand
PLAN_LIMITS = {
    "FREE": {
        "max_social_accounts_per_platform": 1,
    },
    "STARTER": {
        "max_social_accounts_per_platform": 3,
    },
    "PRO": {
        "max_social_accounts_per_platform": 10,
    },
    "AGENCY": {
        "max_social_accounts_per_platform": UNLIMITED,
    },
}


def get_plan_limits(plan):
    """Unknown or missing plans fall back to FREE."""
    key = str(plan or DEFAULT_PLAN).strip().upper()
    return PLAN_LIMITS.get(key) or PLAN_LIMITS[DEFAULT_PLAN]


def can_add_social_account(plan, platform, current_count):
    limit = get_plan_limits(plan)["max_social_accounts_per_platform"]
    if limit == UNLIMITED:
        return True
    return int(current_count) < limit


def describe_social_account_limit(plan):
    limit = get_plan_limits(plan)["max_social_accounts_per_platform"]
    return "unlimited" if limit == UNLIMITED else str(limit)
