"""Rulemaking catalogue operations."""

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from commentdesk.analytics import AnalyticsAggregator
from commentdesk.errors import NotFound
from commentdesk.models import ContextDocument, Rulemaking, RulemakingStatus, utcnow
from commentdesk.schemas import ContextDocumentIn, RulemakingCreate, RulemakingUpdate
from commentdesk.store import RecordStore

logger = logging.getLogger(__name__)

ANALYTICS_DEFAULT_START = date(2024, 1, 1)

# Columns that can be changed but never cleared
REQUIRED_FIELDS = {"agency", "title", "docket_id", "comment_deadline", "status"}


def _documents(values: Optional[List[Any]]) -> List[ContextDocument]:
    documents = []
    for value in values or []:
        if isinstance(value, ContextDocumentIn):
            value = value.model_dump()
        documents.append(ContextDocument.from_value(value))
    return documents


class RulemakingService:
    """Reads and writes rulemaking records."""

    def __init__(self, store: RecordStore, aggregator: Optional[AnalyticsAggregator] = None):
        self.store = store
        self.aggregator = aggregator or AnalyticsAggregator(store)

    def list_active(self) -> List[Rulemaking]:
        """Active rulemakings, soonest deadline first."""
        rows = self.store.query(
            "SELECT * FROM rulemakings WHERE status = :status ORDER BY comment_deadline ASC",
            {"status": RulemakingStatus.ACTIVE.value},
        )
        return [Rulemaking.from_row(row) for row in rows]

    def get(self, rulemaking_id: str) -> Rulemaking:
        row = self.store.get_by_id("rulemakings", rulemaking_id)
        if not row:
            raise NotFound("Rulemaking not found")
        return Rulemaking.from_row(row)

    def find(self, rulemaking_id: str) -> Optional[Rulemaking]:
        row = self.store.get_by_id("rulemakings", rulemaking_id)
        return Rulemaking.from_row(row) if row else None

    def create(self, payload: RulemakingCreate) -> Rulemaking:
        now = utcnow()
        rulemaking = Rulemaking(
            id=str(uuid.uuid4()),
            agency=payload.agency,
            title=payload.title,
            docket_id=payload.docket_id,
            comment_deadline=payload.comment_deadline,
            status=payload.status,
            description=payload.description,
            federal_register_url=payload.federal_register_url,
            context_documents=_documents(payload.context_documents),
            legal_analysis=payload.legal_analysis,
            opposition_points=list(payload.opposition_points or []),
            created_at=now,
            updated_at=now,
        )
        self.store.insert("rulemakings", [rulemaking.to_row()])
        logger.info(f"Created rulemaking {rulemaking.id} ({rulemaking.docket_id})")
        return rulemaking

    def update(self, rulemaking_id: str, payload: RulemakingUpdate) -> Rulemaking:
        """Apply the fields present in ``payload`` and return the stored record."""
        current = self.get(rulemaking_id)

        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in REQUIRED_FIELDS
        }
        for key in changes:
            if key == "context_documents":
                current.context_documents = _documents(payload.context_documents)
            elif key == "opposition_points":
                current.opposition_points = list(payload.opposition_points or [])
            else:
                setattr(current, key, getattr(payload, key))

        row = current.to_row()
        fields = {key: row[key] for key in changes if key in row}
        if fields:
            self.store.update("rulemakings", rulemaking_id, fields)
            logger.info(f"Updated rulemaking {rulemaking_id}: {sorted(fields)}")

        return self.find(rulemaking_id) or current

    def analytics(
        self,
        rulemaking_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Submission aggregate over an inclusive date range."""
        start_date = start_date or ANALYTICS_DEFAULT_START
        end_date = end_date or utcnow().date()
        return self.aggregator.range_summary(rulemaking_id, start_date, end_date)
