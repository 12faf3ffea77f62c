"""
tasks/ledger_tasks.py
Periodic wallet reconciliation. Read-only: drift is reported, never repaired
automatically.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from services.ledger.service import Reconciliation, ledger_balances_query
from tasks.celery_app import DatabaseTask, celery_app

logger = logging.getLogger(__name__)


def find_mismatches(db: Session) -> List[Reconciliation]:
    rows = db.execute(ledger_balances_query()).all()
    return [r for r in map(Reconciliation.from_row, rows) if not r.consistent]


@celery_app.task(bind=True, base=DatabaseTask)
def reconcile_wallets(self):
    """Beat task: log every wallet whose cached balance disagrees with its ledger."""
    db = self.get_session()
    try:
        mismatches = find_mismatches(db)
        for report in mismatches:
            logger.error(
                "Wallet balance drift",
                extra={
                    "user_id": str(report.user_id),
                    "cached": str(report.cached_balance),
                    "ledger": str(report.ledger_balance),
                },
            )
        logger.info(f"Wallet reconciliation finished: {len(mismatches)} mismatches")
        return [str(r.user_id) for r in mismatches]
    finally:
        db.close()
