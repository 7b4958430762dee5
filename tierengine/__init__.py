"""Pure tier-ordering and payload normalization helpers for collaborative tierlists."""

from tierengine.ordering import UNRANKED, MoveResult, plan_move
from tierengine.payloads import PayloadError

__all__ = [
    "MoveResult",
    "PayloadError",
    "UNRANKED",
    "plan_move",
]
