"""
Unit tests for the attendance policy
"""
import unittest
from datetime import datetime, time

from face_timeclock.attendance.policy import AttendancePeriod, AttendancePolicy, get_period
from face_timeclock.models import AttendanceAction, TodayStatus


def at(hour, minute=0):
    return datetime(2024, 3, 11, hour, minute)


class TestGetPeriod(unittest.TestCase):
    """Test cases for period boundaries"""

    def test_boundaries(self):
        """Test each period's first and last minute"""
        cases = [
            (time(0, 0), AttendancePeriod.EARLY_LOGIN),
            (time(8, 59), AttendancePeriod.EARLY_LOGIN),
            (time(9, 0), AttendancePeriod.MORNING_WORK),
            (time(11, 59), AttendancePeriod.MORNING_WORK),
            (time(12, 0), AttendancePeriod.LUNCH_BREAK),
            (time(12, 59), AttendancePeriod.LUNCH_BREAK),
            (time(13, 0), AttendancePeriod.AFTERNOON_WORK),
            (time(17, 59), AttendancePeriod.AFTERNOON_WORK),
            (time(18, 0), AttendancePeriod.AFTER_WORK),
            (time(23, 59), AttendancePeriod.AFTER_WORK),
        ]
        for moment, expected in cases:
            with self.subTest(moment=moment):
                self.assertEqual(get_period(moment), expected)


class TestAttendancePolicy(unittest.TestCase):
    """Test cases for AttendancePolicy.decide"""

    def setUp(self):
        self.policy = AttendancePolicy()

    def test_morning_time_in(self):
        """Test 09:30 with nothing recorded yields Time In"""
        decision = self.policy.decide(at(9, 30), TodayStatus())
        self.assertEqual(decision.action, AttendanceAction.TIME_IN)
        self.assertFalse(decision.requires_choice)

    def test_morning_time_in_already_recorded(self):
        """Test 09:30 after Time In yields NoAction"""
        decision = self.policy.decide(at(9, 30), TodayStatus(has_time_in=True))
        self.assertTrue(decision.is_no_action)
        self.assertEqual(decision.message, 'Time In already recorded today.')

    def test_early_login_requires_choice(self):
        """Test before 09:00 the operator chooses among all actions"""
        decision = self.policy.decide(at(7, 45), TodayStatus())
        self.assertTrue(decision.requires_choice)
        self.assertEqual(set(decision.choices), set(AttendanceAction))

    def test_choices_exclude_recorded_actions(self):
        """Test recorded actions are not offered again"""
        decision = self.policy.decide(at(7, 45), TodayStatus(has_time_in=True))
        self.assertNotIn(AttendanceAction.TIME_IN, decision.choices)
        self.assertEqual(len(decision.choices), 3)

    def test_lunch_choices(self):
        """Test lunch offers break actions and Time In"""
        decision = self.policy.decide(at(12, 15), TodayStatus(has_time_in=True))
        self.assertEqual(
            decision.choices,
            (AttendanceAction.START_BREAK, AttendanceAction.STOP_BREAK)
        )

    def test_lunch_all_recorded_collapses_to_no_action(self):
        """Test a choice with no remaining options is NoAction"""
        status = TodayStatus(has_time_in=True, has_start_break=True, has_stop_break=True)
        decision = self.policy.decide(at(12, 30), status)
        self.assertTrue(decision.is_no_action)
        self.assertEqual(decision.message, 'All actions already recorded today.')

    def test_afternoon_time_in_once(self):
        """Test afternoon auto Time In, then NoAction"""
        first = self.policy.decide(at(14, 0), TodayStatus())
        self.assertEqual(first.action, AttendanceAction.TIME_IN)

        second = self.policy.decide(at(15, 0), TodayStatus(has_time_in=True))
        self.assertTrue(second.is_no_action)

    def test_after_work_time_out(self):
        """Test after 18:00 yields Time Out once"""
        decision = self.policy.decide(at(18, 0), TodayStatus(has_time_in=True))
        self.assertEqual(decision.action, AttendanceAction.TIME_OUT)

        decision = self.policy.decide(at(19, 0), TodayStatus(has_time_out=True))
        self.assertTrue(decision.is_no_action)
        self.assertEqual(decision.message, 'Time Out already recorded today.')

    def test_to_dict(self):
        """Test serialized decision"""
        data = self.policy.decide(at(9, 30), TodayStatus()).to_dict()
        self.assertEqual(data['period'], 'morning_work')
        self.assertEqual(data['action'], 'time_in')
        self.assertEqual(data['choices'], [])


if __name__ == '__main__':
    unittest.main()
