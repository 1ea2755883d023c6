"""
SQLite attendance store.

Persists employees, face sample references and daily attendance records.
Opens a new connection per call; SQLite supports many readers and a single
writer, and every write runs in its own short transaction.

Attendance fields are set-if-null: once a field of a (employee, day) row is
filled it is never overwritten. log_attendance performs the check and the
write as one conditional UPDATE inside a BEGIN IMMEDIATE transaction, so two
sessions recognizing the same employee at once cannot both succeed.
"""

import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Dict, Iterator, List, Optional, Tuple

from ..errors import EmployeeNotFoundError
from ..logging_config import get_logger
from ..models import (
    AttendanceAction,
    AttendanceRecord,
    Employee,
    TodayStatus,
    employee_code,
)

logger = get_logger(__name__)

_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS employees (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        profile_photo TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS face_samples (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        employee_id INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
        path TEXT NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS attendance (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        employee_id INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
        day TEXT NOT NULL,
        time_in TEXT,
        time_out TEXT,
        start_break TEXT,
        stop_break TEXT,
        created_at TEXT NOT NULL,
        UNIQUE (employee_id, day)
    );

    CREATE INDEX IF NOT EXISTS idx_face_samples_employee ON face_samples(employee_id);
    CREATE INDEX IF NOT EXISTS idx_attendance_day ON attendance(day);
'''

_ACTION_COLUMNS = {action: action.value for action in AttendanceAction}


def _format_timestamp(value: datetime) -> str:
    return value.strftime('%Y-%m-%d %H:%M:%S')


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SQLiteAttendanceStore:
    """
    Attendance store backed by a SQLite file.

    Safe to share between the frame loop, the training worker and the
    HTTP server threads.
    """

    def __init__(self, database_path: str):
        self.database_path = database_path

        directory = os.path.dirname(os.path.abspath(database_path))
        os.makedirs(directory, exist_ok=True)

        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly.
        conn = sqlite3.connect(self.database_path, timeout=10.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connection() as conn:
            conn.execute('BEGIN IMMEDIATE')
            try:
                yield conn
            except BaseException:
                conn.execute('ROLLBACK')
                raise
            conn.execute('COMMIT')

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        with self._connection() as conn:
            conn.execute('PRAGMA journal_mode = WAL')
            conn.executescript(_SCHEMA)

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    def add_employee(self, name: str) -> int:
        """Insert an employee and return the new id."""
        with self._transaction() as conn:
            cursor = conn.execute('INSERT INTO employees (name) VALUES (?)', (name,))
            employee_id = cursor.lastrowid

        logger.info(f'Employee {employee_code(employee_id)} added: {name}')
        return employee_id

    def update_employee(self, employee_id: int, name: str) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                'UPDATE employees SET name = ? WHERE id = ?', (name, employee_id)
            )
            if cursor.rowcount == 0:
                raise EmployeeNotFoundError(employee_id)

    def set_profile_photo(self, employee_id: int, path: str) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                'UPDATE employees SET profile_photo = ? WHERE id = ?', (path, employee_id)
            )
            if cursor.rowcount == 0:
                raise EmployeeNotFoundError(employee_id)

    def get_employee_by_id(self, employee_id: int) -> Optional[Employee]:
        with self._connection() as conn:
            row = conn.execute(
                'SELECT id, name, profile_photo FROM employees WHERE id = ?',
                (employee_id,)
            ).fetchone()

        if row is None:
            return None
        return Employee(
            id=row['id'],
            code=employee_code(row['id']),
            name=row['name'],
            profile_photo=row['profile_photo'],
        )

    def list_employees(self) -> List[Employee]:
        """
        All employees ordered by name.

        The profile photo falls back to the latest face sample.
        """
        with self._connection() as conn:
            rows = conn.execute('''
                SELECT e.id, e.name,
                       COALESCE(e.profile_photo, (
                           SELECT f.path FROM face_samples f
                           WHERE f.employee_id = e.id
                           ORDER BY f.id DESC LIMIT 1
                       )) AS photo
                FROM employees e
                ORDER BY e.name, e.id
            ''').fetchall()

        return [
            Employee(id=r['id'], code=employee_code(r['id']), name=r['name'], profile_photo=r['photo'])
            for r in rows
        ]

    def delete_employee(self, employee_id: int) -> None:
        """
        Delete an employee with its face samples and attendance history.

        Sample and profile files are removed from disk as well.
        """
        with self._transaction() as conn:
            row = conn.execute(
                'SELECT profile_photo FROM employees WHERE id = ?', (employee_id,)
            ).fetchone()
            if row is None:
                raise EmployeeNotFoundError(employee_id)

            paths = [
                r['path'] for r in conn.execute(
                    'SELECT path FROM face_samples WHERE employee_id = ?', (employee_id,)
                )
            ]
            if row['profile_photo']:
                paths.append(row['profile_photo'])

            conn.execute('DELETE FROM attendance WHERE employee_id = ?', (employee_id,))
            conn.execute('DELETE FROM face_samples WHERE employee_id = ?', (employee_id,))
            conn.execute('DELETE FROM employees WHERE id = ?', (employee_id,))

        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f'Could not remove {path}: {e}')

        logger.info(f'Employee {employee_code(employee_id)} deleted ({len(paths)} files)')

    # ------------------------------------------------------------------
    # Face samples
    # ------------------------------------------------------------------

    def add_face_sample(self, employee_id: int, path: str) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    'INSERT INTO face_samples (employee_id, path) VALUES (?, ?)',
                    (employee_id, path)
                )
        except sqlite3.IntegrityError:
            raise EmployeeNotFoundError(employee_id)

    def get_all_employees_with_samples(self) -> List[Tuple[int, str]]:
        """
        Every (employee_id, sample path) pair, grouped by employee.

        Employees are enumerated by name; samples in insertion order.
        """
        with self._connection() as conn:
            rows = conn.execute('''
                SELECT e.id AS employee_id, f.path
                FROM employees e
                INNER JOIN face_samples f ON f.employee_id = e.id
                ORDER BY e.name, e.id, f.id
            ''').fetchall()

        return [(r['employee_id'], r['path']) for r in rows]

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    def log_attendance(
        self,
        employee_id: int,
        action: AttendanceAction,
        timestamp: datetime
    ) -> Tuple[bool, str]:
        """
        Record an attendance action for the timestamp's calendar day.

        Args:
            employee_id: Employee ID
            action: Action to record
            timestamp: When the action happened

        Returns:
            (success, message). success is False when the field is already
            set for that day; the stored value is left untouched.

        Raises:
            EmployeeNotFoundError: If the employee does not exist
        """
        column = _ACTION_COLUMNS[action]
        day = timestamp.date().isoformat()
        value = _format_timestamp(timestamp)

        try:
            with self._transaction() as conn:
                conn.execute(
                    'INSERT OR IGNORE INTO attendance (employee_id, day, created_at) VALUES (?, ?, ?)',
                    (employee_id, day, value)
                )
                cursor = conn.execute(
                    f'UPDATE attendance SET {column} = ? '
                    f'WHERE employee_id = ? AND day = ? AND {column} IS NULL',
                    (value, employee_id, day)
                )
                recorded = cursor.rowcount == 1
        except sqlite3.IntegrityError:
            raise EmployeeNotFoundError(employee_id)

        if not recorded:
            logger.info(f'{action.label} already recorded today for {employee_code(employee_id)}')
            return False, f'{action.label} already recorded today.'

        logger.info(f'{action.label} recorded for {employee_code(employee_id)} at {value}')
        return True, f'{action.label} recorded successfully.'

    def get_today_status(self, employee_id: int, day: Optional[date] = None) -> TodayStatus:
        record = self.get_attendance_record(employee_id, day or date.today())
        if record is None:
            return TodayStatus()
        return record.status

    def get_attendance_record(self, employee_id: int, day: date) -> Optional[AttendanceRecord]:
        with self._connection() as conn:
            row = conn.execute('''
                SELECT a.*, e.name
                FROM attendance a
                INNER JOIN employees e ON e.id = a.employee_id
                WHERE a.employee_id = ? AND a.day = ?
            ''', (employee_id, day.isoformat())).fetchone()

        return self._row_to_record(row) if row else None

    def get_attendance_history(
        self,
        employee_id: int,
        days: int = 7,
        today: Optional[date] = None
    ) -> List[AttendanceRecord]:
        """Records of the last `days` days, newest first."""
        since = (today or date.today()) - timedelta(days=days)

        with self._connection() as conn:
            rows = conn.execute('''
                SELECT a.*, e.name
                FROM attendance a
                INNER JOIN employees e ON e.id = a.employee_id
                WHERE a.employee_id = ? AND a.day >= ?
                ORDER BY a.day DESC
            ''', (employee_id, since.isoformat())).fetchall()

        return [self._row_to_record(r) for r in rows]

    def get_today_attendance(
        self,
        day: Optional[date] = None,
        search: Optional[str] = None
    ) -> List[AttendanceRecord]:
        """
        All records of a day, most recent first.

        Args:
            day: Day to list (default today)
            search: Case-insensitive filter on employee name or code
        """
        with self._connection() as conn:
            rows = conn.execute('''
                SELECT a.*, e.name
                FROM attendance a
                INNER JOIN employees e ON e.id = a.employee_id
                WHERE a.day = ?
                ORDER BY a.created_at DESC, a.id DESC
            ''', ((day or date.today()).isoformat(),)).fetchall()

        records = [self._row_to_record(r) for r in rows]

        if search:
            needle = search.strip().lower()
            records = [
                r for r in records
                if needle in r.employee_name.lower() or needle in r.employee_code.lower()
            ]
        return records

    def get_today_stats(self, day: Optional[date] = None) -> Dict[str, int]:
        """Number of employees with each action recorded on a day."""
        with self._connection() as conn:
            row = conn.execute('''
                SELECT COUNT(time_in) AS time_in,
                       COUNT(time_out) AS time_out,
                       COUNT(start_break) AS start_break,
                       COUNT(stop_break) AS stop_break
                FROM attendance
                WHERE day = ?
            ''', ((day or date.today()).isoformat(),)).fetchone()

        return {action.value: row[action.value] for action in AttendanceAction}

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> AttendanceRecord:
        return AttendanceRecord(
            employee_id=row['employee_id'],
            day=date.fromisoformat(row['day']),
            time_in=_parse_timestamp(row['time_in']),
            time_out=_parse_timestamp(row['time_out']),
            start_break=_parse_timestamp(row['start_break']),
            stop_break=_parse_timestamp(row['stop_break']),
            employee_name=row['name'],
            employee_code=employee_code(row['employee_id']),
        )
