"""Submission analytics: daily snapshots and ad hoc summaries."""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

from commentdesk.models import AnalyticsSnapshot, utcnow
from commentdesk.store import RecordStore

logger = logging.getLogger(__name__)

AGGREGATE_SQL = """
    SELECT
        COUNT(*) AS total_submissions,
        COUNT(DISTINCT user_name) AS unique_users,
        COUNT(DISTINCT user_state) AS states_represented,
        AVG(LENGTH(generated_comment)) AS avg_comment_length
    FROM submissions
    WHERE rulemaking_id = :rulemaking_id
      AND created_at >= :start
      AND created_at < :end
"""


def day_bounds(day: date) -> tuple[str, str]:
    """UTC [start, end) of a calendar day as ISO strings."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    return start.isoformat(), end.isoformat()


def _metrics_from_row(row: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    row = row or {}
    return {
        "total_submissions": int(row.get("total_submissions") or 0),
        "unique_users": int(row.get("unique_users") or 0),
        "states_represented": int(row.get("states_represented") or 0),
        "avg_comment_length": round(float(row.get("avg_comment_length") or 0.0), 2),
    }


class AnalyticsAggregator:
    """Computes per-rulemaking submission aggregates."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _aggregate(self, rulemaking_id: str, start: str, end: str) -> Dict[str, Any]:
        rows = self.store.query(
            AGGREGATE_SQL, {"rulemaking_id": rulemaking_id, "start": start, "end": end}
        )
        return _metrics_from_row(rows[0] if rows else None)

    def recompute(self, rulemaking_id: str, day: Optional[date] = None) -> AnalyticsSnapshot:
        """Recompute and upsert the snapshot for one rulemaking and day.

        Running this twice over unchanged submissions stores the same numbers
        in the same single row.
        """
        day = day or utcnow().date()
        start, end = day_bounds(day)
        metrics = self._aggregate(rulemaking_id, start, end)

        existing = self.store.query(
            "SELECT * FROM analytics WHERE date = :date AND rulemaking_id = :rulemaking_id",
            {"date": day.isoformat(), "rulemaking_id": rulemaking_id},
        )

        if existing:
            snapshot = AnalyticsSnapshot.from_row(existing[0])
            for key, value in metrics.items():
                setattr(snapshot, key, value)
            self.store.update("analytics", snapshot.id, metrics)
        else:
            snapshot = AnalyticsSnapshot(
                id=str(uuid.uuid4()), date=day, rulemaking_id=rulemaking_id, **metrics
            )
            self.store.insert("analytics", [snapshot.to_row()])

        logger.info(
            f"Analytics for {rulemaking_id} on {day.isoformat()}: "
            f"{metrics['total_submissions']} submissions"
        )
        return snapshot

    def get_snapshot(self, rulemaking_id: str, day: date) -> Optional[AnalyticsSnapshot]:
        rows = self.store.query(
            "SELECT * FROM analytics WHERE date = :date AND rulemaking_id = :rulemaking_id",
            {"date": day.isoformat(), "rulemaking_id": rulemaking_id},
        )
        return AnalyticsSnapshot.from_row(rows[0]) if rows else None

    def range_summary(self, rulemaking_id: str, start_day: date, end_day: date) -> Dict[str, Any]:
        """Aggregate over an inclusive range of days."""
        start, _ = day_bounds(start_day)
        _, end = day_bounds(end_day)
        return self._aggregate(rulemaking_id, start, end)

    def submission_stats(self, rulemaking_id: Optional[str] = None) -> Dict[str, Any]:
        """Totals across all time, optionally for one rulemaking."""
        sql = """
            SELECT
                COUNT(*) AS total_submissions,
                COUNT(DISTINCT user_name) AS unique_users,
                COUNT(DISTINCT user_state) AS states_represented,
                AVG(LENGTH(generated_comment)) AS avg_comment_length,
                SUM(CASE WHEN submission_status = 'submitted' THEN 1 ELSE 0 END) AS submitted_count,
                SUM(CASE WHEN submission_status = 'draft' THEN 1 ELSE 0 END) AS draft_count
            FROM submissions
        """
        params: Dict[str, Any] = {}
        if rulemaking_id:
            sql += " WHERE rulemaking_id = :rulemaking_id"
            params["rulemaking_id"] = rulemaking_id

        rows = self.store.query(sql, params)
        row = rows[0] if rows else {}
        stats = _metrics_from_row(row)
        stats["submitted_count"] = int(row.get("submitted_count") or 0)
        stats["draft_count"] = int(row.get("draft_count") or 0)
        return stats
