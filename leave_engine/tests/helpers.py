"""
Shared test data
"""
from datetime import date

from leave_engine.constants import ACTOR_HEADER

PERIOD = 2026

# Monday-to-Friday weeks in March 2026
WEEK_1 = (date(2026, 3, 2), date(2026, 3, 6))
WEEK_2 = (date(2026, 3, 9), date(2026, 3, 13))
WEEK_3 = (date(2026, 3, 16), date(2026, 3, 20))
WEEK_4 = (date(2026, 3, 23), date(2026, 3, 27))
WEEK_5 = (date(2026, 3, 30), date(2026, 4, 3))
WEEKS = (WEEK_1, WEEK_2, WEEK_3, WEEK_4, WEEK_5)

REJECTION_COMMENT = "Staffing shortfall during the audit period"


def actor_headers(employee) -> dict:
    return {ACTOR_HEADER: str(employee.id)}
