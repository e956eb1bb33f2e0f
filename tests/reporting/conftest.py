"""Shared trading scenario for report tests."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_modules.posting.builders import BillDocument, BillLine, SaleDocument, SaleLine


@pytest.fixture
def trading_month(document_service, post_journal, standard_accounts, org_id, test_actor_id):
    """
    One month of activity in January 2025.

    - Jan 5:  ten widgets bought on credit at 60
    - Jan 15: all ten sold for cash at 100 plus 10% tax
    - Jan 20: rent of 100 paid
    - Jan 25: interest of 20 paid on the loan
    - Jan 28: interest of 50 received
    """
    accounts = standard_accounts
    product = uuid4()
    document_service.post_bill(
        org_id,
        BillDocument(
            document_id="BILL-1",
            document_date=date(2025, 1, 5),
            currency="USD",
            lines=(BillLine("Widgets", Decimal("10"), Decimal("60"), product_id=product, is_stock=True),),
        ),
        test_actor_id,
    )
    document_service.post_sale(
        org_id,
        SaleDocument(
            document_id="INV-1",
            document_date=date(2025, 1, 15),
            currency="USD",
            lines=(
                SaleLine(
                    "Widget", Decimal("10"), Decimal("100"), tax_rate=Decimal("10"), product_id=product
                ),
            ),
        ),
        test_actor_id,
    )
    post_journal(
        org_id,
        [(accounts["rent"], "debit", "100"), (accounts["cash"], "credit", "100")],
        transaction_date=date(2025, 1, 20),
        transaction_type="PAYMENT",
    )
    post_journal(
        org_id,
        [(accounts["interest_expense"], "debit", "20"), (accounts["cash"], "credit", "20")],
        transaction_date=date(2025, 1, 25),
    )
    post_journal(
        org_id,
        [(accounts["cash"], "debit", "50"), (accounts["interest_income"], "credit", "50")],
        transaction_date=date(2025, 1, 28),
    )
    return accounts
