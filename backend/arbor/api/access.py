"""Access check API: would the caller be allowed to do this?"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import Actor, require_actor
from ..database import get_db
from ..models.enums import NodeKind, Operation
from ..repositories.node_store import NodeStore
from ..schemas.node import AccessCheckResponse
from ..services import TreeService

router = APIRouter(prefix="/api/access", tags=["access"])


@router.get("/{kind}/{node_id}", response_model=AccessCheckResponse)
def check_access(
    kind: NodeKind,
    node_id: str,
    operation: Operation = Query(Operation.READ),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    """Evaluate the access rules for the caller without performing anything."""
    decision = TreeService(NodeStore(db)).check_access(actor, kind, node_id, operation)
    return AccessCheckResponse(
        kind=kind,
        node_id=node_id,
        operation=operation,
        allowed=decision.allowed,
        reason=decision.reason,
    )
