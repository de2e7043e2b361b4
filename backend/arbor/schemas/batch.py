"""Batch placement request and response schemas."""

from typing import List, Optional

from pydantic import BaseModel, field_validator

from .node import order_field, validate_node_id


class BatchOp(BaseModel):
    """One row of a batch. Omitted fields keep their current value.

    An omitted ``parent_id`` keeps the parent; an explicit ``null`` moves
    the node to the root. Use ``model_dump(exclude_unset=True)`` to keep
    the difference.
    """
    id: str
    order: Optional[int] = order_field()
    parent_id: Optional[str] = None
    visible: Optional[bool] = None

    @field_validator('id', 'parent_id')
    @classmethod
    def validate_ids(cls, v: Optional[str]) -> Optional[str]:
        return validate_node_id(v)


class BatchRequest(BaseModel):
    operations: List[BatchOp] = []


class BatchResponse(BaseModel):
    status: str
    changed: int
    paths_updated: List[str] = []
