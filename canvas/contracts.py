"""
Canvas Contracts
================

Error and result types shared by the canvas core and the layers above it.
Every type is frozen; nothing here touches the graph or the view.

ERROR POLICY:
=============
- Invariant violations in the core (duplicate node id, dangling link,
  duplicate link, zero-size fit) are NOT exceptions
- They become explicit Error values returned in a Result
- The interactive session keeps running after any single bad update
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto


# =============================================================================
# REJECTIONS
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for invariant violations and flow failures.
    """
    # Graph store invariants
    DUPLICATE_NODE_ID = auto()
    NODE_NOT_FOUND = auto()
    DANGLING_LINK = auto()
    DUPLICATE_LINK = auto()
    SELF_LINK = auto()

    # View invariants
    DEGENERATE_BOUNDS = auto()

    # Canvas runtime
    FRAME_FAILED = auto()

    # Session flow
    FLOW_PRECONDITION = auto()
    SESSION_BUSY = auto()
    SESSION_RESET = auto()
    AGENT_DEGRADED = auto()


@dataclass(frozen=True)
class Error:
    """
    A rejected operation: code, human message and string context.
    Carried back in a Result and recorded in the audit log.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context: str) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple(sorted((k, str(v)) for k, v in context.items()))
        )

    def with_context(self, key: str, value: str) -> Error:
        """Copy of this error with one more context pair."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )


@dataclass(frozen=True)
class Result:
    """
    Outcome of a store, view or session operation.
    `error` is None exactly when the operation succeeded.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: object = None) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)
