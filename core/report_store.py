"""SQLite persistence for screening reports."""

import json
import logging
import sqlite3
import uuid
from typing import List, Optional

from core.errors import PersistenceError, ReportNotFoundError
from core.utils import DiagnosisResult, Report, ReportState, get_reports_db_path

logger = logging.getLogger(__name__)


class ReportStore:
    """Stores reports and assigns their identifiers."""

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path or str(get_reports_db_path())
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _init_db(self):
        """Create the reports table if it doesn't exist."""
        try:
            with self._connect() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS reports (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        image_ref TEXT NOT NULL,
                        diagnosis_json TEXT,
                        created_at TEXT NOT NULL,
                        shared_with_json TEXT NOT NULL,
                        doctor_feedback TEXT,
                        state TEXT NOT NULL,
                        thumbnail BLOB
                    )
                """)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open report database {self._db_path}: {e}") from e

    def save(self, report: Report, thumbnail: bytes = b"") -> str:
        """Insert a new report and return its generated ID."""
        report_id = uuid.uuid4().hex
        try:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO reports
                       (id, user_id, image_ref, diagnosis_json, created_at,
                        shared_with_json, doctor_feedback, state, thumbnail)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (report_id, *self._row_values(report), thumbnail),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save report: {e}") from e
        logger.debug("Saved report %s for user %s", report_id, report.user_id)
        return report_id

    def update(self, report: Report):
        """Overwrite a stored report. Raises ReportNotFoundError for unknown IDs."""
        if not report.id:
            raise PersistenceError("Cannot update a report that was never saved")
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """UPDATE reports SET
                       user_id = ?, image_ref = ?, diagnosis_json = ?, created_at = ?,
                       shared_with_json = ?, doctor_feedback = ?, state = ?
                       WHERE id = ?""",
                    (*self._row_values(report), report.id),
                )
                updated = cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to update report {report.id}: {e}") from e
        if updated == 0:
            raise ReportNotFoundError(report.id)

    def load(self, report_id: str) -> Report:
        """Load a report by ID."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM reports WHERE id = ?", (report_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load report {report_id}: {e}") from e
        if row is None:
            raise ReportNotFoundError(report_id)
        return self._row_to_report(row)

    def get_thumbnail(self, report_id: str) -> bytes:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT thumbnail FROM reports WHERE id = ?", (report_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load thumbnail {report_id}: {e}") from e
        if row is None:
            raise ReportNotFoundError(report_id)
        return row[0] or b""

    def list_for_user(self, user_id: str, limit: int = 100) -> List[Report]:
        """Get a user's reports, newest first."""
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM reports WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
                    (user_id, limit),
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list reports: {e}") from e
        return [self._row_to_report(row) for row in rows]

    def delete(self, report_id: str) -> bool:
        """Delete a report."""
        try:
            with self._connect() as conn:
                cursor = conn.execute("DELETE FROM reports WHERE id = ?", (report_id,))
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete report {report_id}: {e}") from e

    def count(self) -> int:
        """Get total number of stored reports."""
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT COUNT(*) FROM reports").fetchone()
                return row[0] if row else 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to count reports: {e}") from e

    @staticmethod
    def _row_values(report: Report) -> tuple:
        diagnosis_json = json.dumps(report.diagnosis.to_dict()) if report.diagnosis else None
        return (
            report.user_id,
            report.image_ref,
            diagnosis_json,
            report.created_at,
            json.dumps(report.shared_with_doctors),
            report.doctor_feedback,
            report.state.value,
        )

    @staticmethod
    def _row_to_report(row) -> Report:
        """Convert a database row to a Report."""
        return Report(
            id=row[0],
            user_id=row[1],
            image_ref=row[2],
            diagnosis=DiagnosisResult.from_dict(json.loads(row[3])) if row[3] else None,
            created_at=row[4],
            shared_with_doctors=json.loads(row[5]),
            doctor_feedback=row[6],
            state=ReportState(row[7]),
        )
