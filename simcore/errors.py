"""
TribeSim: simcore/errors.py
Exception hierarchy for recoverable simulation failures.
"""

from __future__ import annotations

from typing import Optional

# Error kinds reported by CorruptSaveError.kind
KIND_MALFORMED_JSON = "malformed_json"
KIND_INVALID_SNAPSHOT = "invalid_snapshot"


class SimulationError(Exception):
    """Base class for errors raised by the simulation core."""


class CorruptSaveError(SimulationError):
    """
    A stored snapshot could not be turned back into a simulation state.

    kind   -- KIND_MALFORMED_JSON or KIND_INVALID_SNAPSHOT
    slot   -- the save slot that was being read, if known
    detail -- human-readable cause (first validation errors, parser message)
    """

    def __init__(self, kind: str, slot: Optional[str] = None, detail: str = "") -> None:
        self.kind = kind
        self.slot = slot
        self.detail = detail
        where = f" in slot '{slot}'" if slot else ""
        super().__init__(f"Corrupt save{where} ({kind}): {detail}")
