"""
Attendance policy module.

Maps the time of day and today's recorded actions of a recognized employee
to exactly one attendance decision:

    EarlyLogin     [00:00, 09:00)  operator chooses any action
    MorningWork    [09:00, 12:00)  Time In, once
    LunchBreak     [12:00, 13:00)  operator chooses Start/Stop Break or Time In
    AfternoonWork  [13:00, 18:00)  Time In, once
    AfterWork      [18:00, 24:00)  Time Out, once
"""

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Optional, Tuple

from ..models import AttendanceAction, TodayStatus


class AttendancePeriod(Enum):
    EARLY_LOGIN = 'early_login'
    MORNING_WORK = 'morning_work'
    LUNCH_BREAK = 'lunch_break'
    AFTERNOON_WORK = 'afternoon_work'
    AFTER_WORK = 'after_work'


EARLY_LOGIN_END = time(9, 0)
MORNING_WORK_END = time(12, 0)
LUNCH_END = time(13, 0)
AFTERNOON_WORK_END = time(18, 0)

ALL_ACTIONS = (
    AttendanceAction.TIME_IN,
    AttendanceAction.TIME_OUT,
    AttendanceAction.START_BREAK,
    AttendanceAction.STOP_BREAK,
)

LUNCH_ACTIONS = (
    AttendanceAction.START_BREAK,
    AttendanceAction.STOP_BREAK,
    AttendanceAction.TIME_IN,
)


def get_period(moment: time) -> AttendancePeriod:
    """Period of the day a wall-clock time falls into."""
    if moment < EARLY_LOGIN_END:
        return AttendancePeriod.EARLY_LOGIN
    if moment < MORNING_WORK_END:
        return AttendancePeriod.MORNING_WORK
    if moment < LUNCH_END:
        return AttendancePeriod.LUNCH_BREAK
    if moment < AFTERNOON_WORK_END:
        return AttendancePeriod.AFTERNOON_WORK
    return AttendancePeriod.AFTER_WORK


@dataclass(frozen=True)
class PolicyDecision:
    """
    Outcome of the policy for one stable recognition.

    Exactly one of these holds:
    - action is set: record it automatically
    - choices is non-empty: the operator must pick one of them
    - neither: nothing to record, show message
    """
    period: AttendancePeriod
    action: Optional[AttendanceAction] = None
    choices: Tuple[AttendanceAction, ...] = field(default_factory=tuple)
    message: str = ''

    @property
    def requires_choice(self) -> bool:
        return bool(self.choices)

    @property
    def is_no_action(self) -> bool:
        return self.action is None and not self.choices

    def to_dict(self) -> dict:
        return {
            'period': self.period.value,
            'action': self.action.value if self.action else None,
            'choices': [c.value for c in self.choices],
            'message': self.message,
        }


class AttendancePolicy:
    """Time-of-day state machine producing attendance decisions."""

    def decide(self, now: datetime, status: TodayStatus) -> PolicyDecision:
        """
        Decide what to record for a stable identity.

        Args:
            now: Current local time
            status: Actions the employee already recorded today

        Returns:
            PolicyDecision
        """
        period = get_period(now.time())

        if period is AttendancePeriod.EARLY_LOGIN:
            return self._choice(
                period, ALL_ACTIONS, status,
                "It's before 9:00 AM. Select the action to record."
            )

        if period is AttendancePeriod.LUNCH_BREAK:
            return self._choice(
                period, LUNCH_ACTIONS, status,
                "It's lunch time (12:00 PM - 1:00 PM). Select the action to record."
            )

        if period is AttendancePeriod.AFTER_WORK:
            return self._once(period, AttendanceAction.TIME_OUT, status)

        # Morning and afternoon work both default to Time In
        return self._once(period, AttendanceAction.TIME_IN, status)

    @staticmethod
    def _once(
        period: AttendancePeriod,
        action: AttendanceAction,
        status: TodayStatus
    ) -> PolicyDecision:
        if status.is_recorded(action):
            return PolicyDecision(
                period=period,
                message=f'{action.label} already recorded today.'
            )
        return PolicyDecision(period=period, action=action)

    @staticmethod
    def _choice(
        period: AttendancePeriod,
        options: Tuple[AttendanceAction, ...],
        status: TodayStatus,
        message: str
    ) -> PolicyDecision:
        remaining = tuple(a for a in options if not status.is_recorded(a))
        if not remaining:
            return PolicyDecision(
                period=period,
                message='All actions already recorded today.'
            )
        return PolicyDecision(period=period, choices=remaining, message=message)
