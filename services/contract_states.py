# Contract lifecycle transition table

from datetime import datetime
from typing import Optional, Tuple
import logging

from core.exceptions import BusinessRuleError
from database.marketplace_models import Contract, ContractStatusDB as S, WorkflowStatusDB as W

logger = logging.getLogger(__name__)

ANY = "*"

# action -> (allowed (status, workflow) pairs, target (status, workflow))
# A target workflow of ANY keeps the current workflow status.
TRANSITIONS = {
    "activate": ({(S.PENDING, None)}, (S.ACTIVE, W.ACTIVE)),
    "complete": ({(S.ACTIVE, W.ACTIVE)}, (S.COMPLETED, W.WAITING_REVIEW)),
    "cancel": ({(S.ACTIVE, W.ACTIVE)}, (S.CANCELLED, ANY)),
    "dispute": ({(S.ACTIVE, W.ACTIVE), (S.COMPLETED, W.WAITING_REVIEW)}, (S.DISPUTED, ANY)),
    "release_payment": ({(S.COMPLETED, W.WAITING_REVIEW)}, (S.COMPLETED, W.PAYMENT_AVAILABLE)),
    "mark_withdrawn": ({(S.COMPLETED, W.PAYMENT_AVAILABLE)}, (S.COMPLETED, W.PAYMENT_WITHDRAWN)),
    "resolve_complete": ({(S.DISPUTED, ANY)}, (S.COMPLETED, W.WAITING_REVIEW)),
    "resolve_cancel": ({(S.DISPUTED, ANY)}, (S.CANCELLED, ANY)),
}

TERMINAL = {
    (S.CANCELLED, ANY),
    (S.COMPLETED, W.PAYMENT_AVAILABLE),
    (S.COMPLETED, W.PAYMENT_WITHDRAWN),
}


def state_of(contract: Contract) -> Tuple[S, Optional[W]]:
    return contract.status, contract.workflow_status


def can_transition(contract: Contract, action: str) -> bool:
    allowed, _ = TRANSITIONS[action]
    status, workflow = state_of(contract)
    return (status, workflow) in allowed or (status, ANY) in allowed


def is_terminal(contract: Contract) -> bool:
    status, workflow = state_of(contract)
    return (status, workflow) in TERMINAL or (status, ANY) in TERMINAL


def apply_transition(contract: Contract, action: str) -> Contract:
    """Move the contract along `action`, or raise BusinessRuleError if it is not allowed from here."""
    if action not in TRANSITIONS:
        raise ValueError(f"Unknown contract action '{action}'")

    status, workflow = state_of(contract)
    if not can_transition(contract, action):
        logger.warning(
            f"Blocked {action} on contract {contract.id}: status={status.value if status else None} "
            f"workflow={workflow.value if workflow else None}"
        )
        raise BusinessRuleError(
            f"Cannot {action.replace('_', ' ')} a contract that is "
            f"{status.value}" + (f"/{workflow.value}" if workflow else "")
        )

    _, (target_status, target_workflow) = TRANSITIONS[action]
    contract.status = target_status
    if target_workflow != ANY:
        contract.workflow_status = target_workflow

    now = datetime.utcnow()
    if action == "activate":
        contract.started_at = now
    elif target_status == S.COMPLETED and target_workflow == W.WAITING_REVIEW:
        contract.completed_at = contract.completed_at or now
    elif target_status == S.CANCELLED:
        contract.cancelled_at = now

    logger.info(
        f"Contract {contract.id}: {action} "
        f"({status.value if status else None}/{workflow.value if workflow else None} -> "
        f"{contract.status.value}/{contract.workflow_status.value if contract.workflow_status else None})"
    )
    return contract
