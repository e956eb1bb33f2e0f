"""
SettlementService -- records cash settlement of business documents.

Cash-basis reports count a posted transaction only when its source document
(reference_type, reference_id) has a settlement dated inside the period.
The payments collaborator calls ``record_settlement``; rows are append-only.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.settlement import DocumentSettlement
from ledger_kernel.services.base import SYSTEM_ACTOR_ID, BaseService

logger = get_logger("services.settlement")


class SettlementService(BaseService):

    def record_settlement(
        self,
        organization_id: UUID,
        reference_type: str,
        reference_id: str,
        settled_on: date,
        amount: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> DocumentSettlement:
        settlement = DocumentSettlement(
            organization_id=organization_id,
            reference_type=reference_type,
            reference_id=str(reference_id),
            settled_on=settled_on,
            amount=amount,
            created_by_id=actor_id or SYSTEM_ACTOR_ID,
        )
        self.session.add(settlement)
        self.session.flush()
        logger.info(
            "settlement_recorded",
            extra={
                "organization_id": organization_id,
                "reference_type": reference_type,
                "reference_id": reference_id,
                "settled_on": settled_on,
            },
        )
        return settlement

    def settlements_for(
        self, organization_id: UUID, reference_type: str, reference_id: str
    ) -> list[DocumentSettlement]:
        return list(
            self.session.execute(
                select(DocumentSettlement)
                .where(
                    DocumentSettlement.organization_id == organization_id,
                    DocumentSettlement.reference_type == reference_type,
                    DocumentSettlement.reference_id == str(reference_id),
                )
                .order_by(DocumentSettlement.settled_on)
            ).scalars()
        )
