from fastapi import Depends
from sqlmodel import Session

from .database import get_session
from .services.store import GiftStore
from .services.lifecycle import GiftLifecycle
from .services.approval import ApprovalWorkflow
from .services.inbound import InboundRouter

def get_store(session: Session = Depends(get_session)) -> GiftStore:
    return GiftStore(session)

def get_lifecycle(store: GiftStore = Depends(get_store)) -> GiftLifecycle:
    return GiftLifecycle(store)

def get_approvals(
    store: GiftStore = Depends(get_store),
    lifecycle: GiftLifecycle = Depends(get_lifecycle)
) -> ApprovalWorkflow:
    return ApprovalWorkflow(store, lifecycle)

def get_inbound_router(
    store: GiftStore = Depends(get_store),
    lifecycle: GiftLifecycle = Depends(get_lifecycle),
    approvals: ApprovalWorkflow = Depends(get_approvals)
) -> InboundRouter:
    return InboundRouter(store, lifecycle, approvals)
