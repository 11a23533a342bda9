# Contract audit trail

from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional
import logging

from database.marketplace_models import Contract, ContractAuditLog

logger = logging.getLogger(__name__)


class ContractAuditService:
    def __init__(self, db: Session):
        self.db = db

    def log(self, contract: Contract, action: str, details: Optional[dict] = None, user_id: Optional[str] = None) -> ContractAuditLog:
        entry = ContractAuditLog(
            contract_id=contract.id,
            user_id=user_id,
            action=action,
            details=details or {},
            created_at=datetime.utcnow(),
        )
        self.db.add(entry)
        logger.info(f"Contract audit: contract={contract.id} action={action} user={user_id} details={details or {}}")
        return entry

    def history(self, contract_id: str) -> List[ContractAuditLog]:
        return (
            self.db.query(ContractAuditLog)
            .filter(ContractAuditLog.contract_id == contract_id)
            .order_by(ContractAuditLog.created_at.asc())
            .all()
        )
