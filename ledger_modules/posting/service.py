"""
Document Posting Service (``ledger_modules.posting.service``).

Responsibility
--------------
Orchestrates the posting of business documents -- sales, vendor bills and
bank transfers -- and the voiding of sales.  Each call resolves accounts,
builds legs with the pure builders, posts through the kernel
``PostingService`` and drives the inventory and settlement side effects.

Architecture
------------
Layer: **Modules** -- thin glue.  Constructor: ``session`` + optional
``clock`` and collaborators; ``from_config`` wires the collaborators from a
``LedgerConfiguration``.  Never commits: the caller's ``UnitOfWork`` makes
the ledger posting, stock movements and settlement one atomic unit.

Invariants
----------
- Cost of goods sold on a sale is the cost actually taken out of inventory
  (weighted average at the time of deduction), not a catalogue price.
- A void never edits the original: it posts a reversal and returns stock
  with RETURN movements at the unit cost originally deducted.

Failure Modes
-------------
- Any kernel error (unbalanced, unknown account, missing default,
  duplicate posting, already reversed) propagates; the unit of work rolls
  back stock movements made earlier in the same call.
- ``InsufficientStockError`` only when ``raise_on_insufficient`` is set.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engines.tax import TaxCalculator
from ledger_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO, round_money
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import PostingRequest
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.default_account import AccountKind
from ledger_kernel.models.inventory import MovementType, StockMovement
from ledger_kernel.models.transaction import Transaction, TransactionType
from ledger_kernel.services.account_resolver import AccountResolver, ResolutionContext
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.posting_service import PostingService
from ledger_kernel.services.reversal_service import ReversalService
from ledger_kernel.services.settlement_service import SettlementService
from ledger_modules.inventory.models import AdditionResult, DeductionResult
from ledger_modules.inventory.service import InventoryValuationService
from ledger_modules.posting.builders import (
    AccountLookup,
    BankTransferDocument,
    BillDocument,
    SaleDocument,
    bill_line_costs,
    build_bank_transfer_legs,
    build_bill_legs,
    build_sale_legs,
)
from ledger_modules.posting.models import (
    BillPostingResult,
    DocumentReference,
    SalePostingResult,
    VoidSaleResult,
)

logger = get_logger("modules.posting.service")


class DocumentPostingService(BaseService):
    """
    Posts sales, bills and bank transfers.

    Usage::

        with UnitOfWork(factory) as uow:
            documents = DocumentPostingService.from_config(uow.session, config)
            result = documents.post_sale(org_id, sale, actor_id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        resolver: AccountResolver | None = None,
        posting: PostingService | None = None,
        reversal: ReversalService | None = None,
        inventory: InventoryValuationService | None = None,
        settlements: SettlementService | None = None,
        calculator: TaxCalculator | None = None,
    ):
        super().__init__(session, clock)
        self._resolver = resolver or AccountResolver(session)
        self._posting = posting or PostingService(
            session, clock=self.clock, resolver=self._resolver
        )
        self._reversal = reversal or ReversalService(
            session, clock=self.clock, posting=self._posting
        )
        self._inventory = inventory or InventoryValuationService(session, clock=self.clock)
        self._settlements = settlements or SettlementService(session, clock=self.clock)
        self._calculator = calculator or TaxCalculator()

    @classmethod
    def from_config(cls, session: Session, config, clock: Clock | None = None) -> DocumentPostingService:
        """Wire collaborators from a ``ledger_config.LedgerConfiguration``."""
        resolver = AccountResolver(session, config.code_prefix_fallback.to_policy())
        posting = PostingService(
            session,
            clock=clock,
            resolver=resolver,
            tolerance=config.balance_tolerance,
            number_prefix=config.transaction_number_prefix,
        )
        inventory = InventoryValuationService(
            session, clock=clock, default_location=config.default_inventory_location
        )
        return cls(session, clock=clock, resolver=resolver, posting=posting, inventory=inventory)

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def post_sale(
        self,
        organization_id: UUID,
        document: SaleDocument,
        actor_id: UUID,
        raise_on_insufficient: bool = False,
    ) -> SalePostingResult:
        """
        Post a sale: deduct stock, then post revenue, tax and actual COGS.

        Cash sales are recorded as settled on the document date.
        """
        with LogContext.bind(organization_id=organization_id, actor_id=actor_id):
            lines = []
            deductions: list[DeductionResult] = []
            for line in document.lines:
                if line.product_id is None:
                    lines.append(line)
                    continue
                deduction = self._inventory.deduct(
                    organization_id,
                    line.product_id,
                    line.quantity,
                    document.location,
                    movement_type=MovementType.SALE,
                    reference_type=DocumentReference.SALE.value,
                    reference_id=document.document_id,
                    movement_date=document.document_date,
                    actor_id=actor_id,
                    raise_on_insufficient=raise_on_insufficient,
                )
                deductions.append(deduction)
                if deduction.is_tracked:
                    line = replace(line, cost_total=deduction.total_cost)
                lines.append(line)
            document = replace(document, lines=tuple(lines))

            legs = build_sale_legs(document, self._lookup(organization_id), self._calculator)
            transaction = self._posting.post_transaction(
                PostingRequest(
                    organization_id=organization_id,
                    transaction_date=document.document_date,
                    transaction_type=TransactionType.SALE.value,
                    legs=legs,
                    actor_id=actor_id,
                    reference_type=DocumentReference.SALE.value,
                    reference_id=document.document_id,
                    description=document.description or f"Sale {document.document_id}",
                    branch_id=document.branch_id,
                )
            )

            settlement = None
            if document.is_cash_sale:
                settlement = self._settlements.record_settlement(
                    organization_id,
                    DocumentReference.SALE.value,
                    document.document_id,
                    document.document_date,
                    actor_id=actor_id,
                )

            cost = sum((line.cost_of_goods for line in document.lines), ZERO)
            logger.info(
                "sale_posted",
                extra={
                    "transaction_id": transaction.id,
                    "document_id": document.document_id,
                    "cost_of_goods_sold": cost,
                    "tracked_lines": sum(1 for d in deductions if d.is_tracked),
                    "backorder": any(d.insufficient_stock for d in deductions),
                },
            )
            return SalePostingResult(
                transaction=transaction,
                deductions=tuple(deductions),
                cost_of_goods_sold=cost,
                settlement=settlement,
            )

    def void_sale(
        self,
        organization_id: UUID,
        transaction_id: UUID,
        reason: str,
        actor_id: UUID,
        void_date: date | None = None,
    ) -> VoidSaleResult:
        """Reverse a posted sale and put its deducted stock back."""
        with LogContext.bind(organization_id=organization_id, actor_id=actor_id):
            reversal = self._reversal.reverse_transaction(
                organization_id, transaction_id, reason, actor_id, reversal_date=void_date
            )
            original = self._posting.get_transaction(organization_id, transaction_id)

            returns: list[AdditionResult] = []
            if original.reference_type == DocumentReference.SALE.value:
                for movement in self._sale_movements(organization_id, original.reference_id):
                    returns.append(
                        self._inventory.add(
                            organization_id,
                            movement.product_id,
                            -Decimal(movement.quantity),
                            Decimal(movement.unit_cost),
                            movement.location,
                            movement_type=MovementType.RETURN,
                            reference_type=DocumentReference.SALE.value,
                            reference_id=original.reference_id,
                            movement_date=reversal.transaction_date,
                            actor_id=actor_id,
                        )
                    )

            logger.info(
                "sale_voided",
                extra={
                    "transaction_id": original.id,
                    "reversal_id": reversal.id,
                    "returned_lines": len(returns),
                },
            )
            return VoidSaleResult(original=original, reversal=reversal, returns=tuple(returns))

    # ------------------------------------------------------------------
    # Bills
    # ------------------------------------------------------------------

    def post_bill(
        self,
        organization_id: UUID,
        document: BillDocument,
        actor_id: UUID,
    ) -> BillPostingResult:
        """
        Post a vendor bill and receive its stock lines into inventory.

        Recoverable input tax goes to the TAX_RECEIVABLE default when one is
        configured; otherwise it is capitalised into each line's cost.
        """
        with LogContext.bind(organization_id=organization_id, actor_id=actor_id):
            input_tax_account = self._resolver.find_default_account(
                organization_id, AccountKind.TAX_RECEIVABLE
            )
            legs = build_bill_legs(
                document, self._lookup(organization_id), input_tax_account, self._calculator
            )
            transaction = self._posting.post_transaction(
                PostingRequest(
                    organization_id=organization_id,
                    transaction_date=document.document_date,
                    transaction_type=TransactionType.BILL.value,
                    legs=legs,
                    actor_id=actor_id,
                    reference_type=DocumentReference.BILL.value,
                    reference_id=document.document_id,
                    description=document.description or f"Bill {document.document_id}",
                    branch_id=document.branch_id,
                )
            )

            costs = bill_line_costs(
                document, capitalise_tax=input_tax_account is None, calculator=self._calculator
            )
            additions: list[AdditionResult] = []
            for line, cost in zip(document.lines, costs):
                if not line.is_stock or line.product_id is None or line.quantity <= ZERO:
                    continue
                value_in_base = cost * document.exchange_rate
                additions.append(
                    self._inventory.add(
                        organization_id,
                        line.product_id,
                        line.quantity,
                        round_money(value_in_base / line.quantity, MONEY_DECIMAL_PLACES),
                        document.location,
                        movement_type=MovementType.RECEIPT,
                        reference_type=DocumentReference.BILL.value,
                        reference_id=document.document_id,
                        movement_date=document.document_date,
                        actor_id=actor_id,
                    )
                )

            settlement = None
            if document.paid_from_account_id is not None:
                settlement = self._settlements.record_settlement(
                    organization_id,
                    DocumentReference.BILL.value,
                    document.document_id,
                    document.document_date,
                    actor_id=actor_id,
                )

            logger.info(
                "bill_posted",
                extra={
                    "transaction_id": transaction.id,
                    "document_id": document.document_id,
                    "stock_lines": len(additions),
                    "input_tax_recoverable": input_tax_account is not None,
                },
            )
            return BillPostingResult(
                transaction=transaction, additions=tuple(additions), settlement=settlement
            )

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def post_bank_transfer(
        self,
        organization_id: UUID,
        document: BankTransferDocument,
        actor_id: UUID,
    ) -> Transaction:
        with LogContext.bind(organization_id=organization_id, actor_id=actor_id):
            transaction = self._posting.post_transaction(
                PostingRequest(
                    organization_id=organization_id,
                    transaction_date=document.transfer_date,
                    transaction_type=TransactionType.BANK_TRANSFER.value,
                    legs=build_bank_transfer_legs(document),
                    actor_id=actor_id,
                    reference_type=DocumentReference.BANK_TRANSFER.value,
                    reference_id=document.document_id,
                    description=document.description or f"Transfer {document.document_id}",
                    branch_id=document.branch_id,
                )
            )
            logger.info(
                "bank_transfer_posted",
                extra={"transaction_id": transaction.id, "amount": document.amount},
            )
            return transaction

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lookup(self, organization_id: UUID) -> AccountLookup:
        def resolve(kind: AccountKind, override: UUID | None, category: UUID | None) -> UUID:
            return self._resolver.resolve_account(
                kind,
                ResolutionContext(
                    organization_id=organization_id,
                    override_account_id=override,
                    category_account_id=category,
                ),
            )

        return resolve

    def _sale_movements(self, organization_id: UUID, reference_id: str | None) -> list[StockMovement]:
        return list(
            self.session.execute(
                select(StockMovement)
                .where(
                    StockMovement.organization_id == organization_id,
                    StockMovement.reference_type == DocumentReference.SALE.value,
                    StockMovement.reference_id == reference_id,
                    StockMovement.movement_type == MovementType.SALE.value,
                    StockMovement.quantity < ZERO,
                )
                .order_by(StockMovement.created_at)
            ).scalars()
        )
