"""
Domain records shared by the recognition pipeline, the attendance policy
and the store.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class AttendanceAction(Enum):
    """Attendance actions an employee can record once per day."""
    TIME_IN = 'time_in'
    TIME_OUT = 'time_out'
    START_BREAK = 'start_break'
    STOP_BREAK = 'stop_break'

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ').title()


def employee_code(employee_id: int) -> str:
    return f'EMP-{employee_id:03d}'


@dataclass(frozen=True)
class Employee:
    id: int
    code: str
    name: str
    profile_photo: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'profilePhoto': self.profile_photo,
        }


@dataclass(frozen=True)
class TodayStatus:
    """Which actions an employee already recorded on a given day."""
    has_time_in: bool = False
    has_time_out: bool = False
    has_start_break: bool = False
    has_stop_break: bool = False

    def is_recorded(self, action: AttendanceAction) -> bool:
        return getattr(self, f'has_{action.value}')

    def to_dict(self) -> dict:
        return {action.value: self.is_recorded(action) for action in AttendanceAction}


@dataclass(frozen=True)
class AttendanceRecord:
    employee_id: int
    day: date
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    start_break: Optional[datetime] = None
    stop_break: Optional[datetime] = None
    employee_name: Optional[str] = None
    employee_code: Optional[str] = None

    def get(self, action: AttendanceAction) -> Optional[datetime]:
        return getattr(self, action.value)

    @property
    def status(self) -> TodayStatus:
        return TodayStatus(
            has_time_in=self.time_in is not None,
            has_time_out=self.time_out is not None,
            has_start_break=self.start_break is not None,
            has_stop_break=self.stop_break is not None,
        )

    def to_dict(self) -> dict:
        def fmt(value: Optional[datetime]) -> Optional[str]:
            return value.strftime('%H:%M:%S') if value else None

        return {
            'employeeId': self.employee_id,
            'employeeName': self.employee_name,
            'employeeCode': self.employee_code,
            'date': self.day.isoformat(),
            'timeIn': fmt(self.time_in),
            'timeOut': fmt(self.time_out),
            'startBreak': fmt(self.start_break),
            'stopBreak': fmt(self.stop_break),
        }
