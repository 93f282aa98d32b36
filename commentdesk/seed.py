"""Sample rulemaking used to populate a fresh database."""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from commentdesk.models import Rulemaking
from commentdesk.rulemakings import RulemakingService
from commentdesk.schemas import RulemakingCreate

logger = logging.getLogger(__name__)

SAMPLE_RULEMAKINGS: List[Dict[str, Any]] = [
    {
        "agency": "CFPB",
        "title": "Legal Standard Applicable to Supervisory Designation Proceedings",
        "description": (
            "The Consumer Financial Protection Bureau (CFPB) is proposing to change its "
            'rules to require "high likelihood of significant harm" before it can '
            'investigate financial companies, instead of the current "reasonable cause" '
            "standard. This could prevent the agency from stopping discrimination, "
            "predatory lending, and other harmful practices before consumers are "
            "seriously hurt.\n\n"
            "The proposed rule would make it much harder for the CFPB to take action "
            "against financial companies that may be engaging in harmful practices."
        ),
        "docket_id": "CFPB-2025-0018",
        "federal_register_url": "https://www.regulations.gov/docket/CFPB-2025-0018",
        "status": "active",
        "context_documents": [
            "CFR-2025-title12-vol8-chapIX.pdf",
            "Federal Register Legal Standard Applicable to Supervisory Designation Proceedings.pdf",
            "NCRC Comment Legal Standard Applicable to Supervisory Designation Proceedings.pdf",
        ],
        "legal_analysis": (
            "The proposed rule change would alter the CFPB's supervisory authority by "
            'raising the threshold for action from "reasonable cause to determine risks" '
            'to "high likelihood of significant harm." This could delay intervention '
            "until after consumers have already been harmed and reduce the agency's "
            "ability to prevent systemic issues before they become widespread."
        ),
        "opposition_points": [
            "Raises the burden of proof for CFPB action, potentially delaying consumer protection",
            "Could prevent proactive supervision of emerging risks",
            "May allow harmful practices to continue until significant damage occurs",
            "Undermines the CFPB's mission to prevent consumer harm",
            "Creates uncertainty about when the agency can take action",
        ],
    }
]


def seed_rulemakings(
    service: RulemakingService, deadline: Optional[date] = None
) -> List[Rulemaking]:
    """Insert sample rulemakings whose docket is not already present.

    ``deadline`` defaults to 90 days from today so the sample accepts comments.
    """
    deadline = deadline or date.today() + timedelta(days=90)
    created = []
    for sample in SAMPLE_RULEMAKINGS:
        existing = service.store.query(
            "SELECT id FROM rulemakings WHERE docket_id = :docket_id",
            {"docket_id": sample["docket_id"]},
        )
        if existing:
            logger.info(f"Skipping {sample['docket_id']}: already seeded")
            continue
        payload = RulemakingCreate(**sample, comment_deadline=deadline)
        created.append(service.create(payload))
    return created
