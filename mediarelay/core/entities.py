from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from mediarelay.core.log import new_request_id


@dataclass(frozen=True)
class ExtractionRequest:
    """One caller invocation. Never reused."""
    source_url: str
    metadata_only: bool = False
    # Verdict of the advisory check in the presentation layer.
    proceed: bool = True
    request_id: str = field(default_factory=new_request_id)


class TransferState(Enum):
    PENDING = "PENDING"
    STREAMING = "STREAMING"
    VALIDATING = "VALIDATING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


_STATE_ORDER = {
    TransferState.PENDING: 0,
    TransferState.STREAMING: 1,
    TransferState.VALIDATING: 2,
    TransferState.COMPLETED: 3,
    TransferState.FAILED: 3,
}


class InvalidTransition(RuntimeError):
    pass


@dataclass
class TransferSession:
    """Bookkeeping for a single byte transfer."""
    request_id: str
    total_bytes_expected: Optional[int] = None
    bytes_received: int = 0
    state: TransferState = TransferState.PENDING
    chunks: List[bytes] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (TransferState.COMPLETED, TransferState.FAILED)

    def advance(self, new_state: TransferState) -> None:
        if self.is_terminal:
            raise InvalidTransition(f"transfer already {self.state.value}")
        if _STATE_ORDER[new_state] <= _STATE_ORDER[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {new_state.value}")
        self.state = new_state

    def record(self, chunk: bytes, keep: bool = True) -> None:
        if self.state is not TransferState.STREAMING:
            raise InvalidTransition(f"cannot receive data while {self.state.value}")
        self.bytes_received += len(chunk)
        if keep:
            self.chunks.append(chunk)

    def reassemble(self) -> bytes:
        data = b"".join(self.chunks)
        self.chunks = []
        return data

    def fail(self, message: str) -> None:
        # Partial data is never handed out.
        self.chunks = []
        self.error_message = message
        if not self.is_terminal:
            self.state = TransferState.FAILED

    def complete(self) -> None:
        self.advance(TransferState.COMPLETED)
