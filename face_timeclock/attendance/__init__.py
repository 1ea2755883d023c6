"""
Attendance package.

Contains modules for:
- Time-of-day attendance policy
- SQLite attendance store
"""

from .policy import AttendancePeriod, AttendancePolicy, PolicyDecision, get_period
from .store import SQLiteAttendanceStore

__all__ = [
    'AttendancePeriod',
    'AttendancePolicy',
    'PolicyDecision',
    'get_period',
    'SQLiteAttendanceStore',
]
