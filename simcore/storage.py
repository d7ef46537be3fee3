"""
TribeSim: simcore/storage.py
Persistence: save slots and a settings namespace on the local filesystem.
=========================================================================
Stack:       Python 3.11+ | Pydantic v2 | stdlib json
Status:      Persistence collaborator for the orchestrator.

Layout
------
  <root>/saves/<slot>.json   {id, name, created_at, updated_at, state}
  <root>/settings.json       flat key/value map (camera, UI prefs)

Snapshots are validated on the way in. A slot that is missing reads as
None; a slot that exists but cannot be parsed or validated raises
CorruptSaveError so the caller can tell the two apart.
"""

from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Annotated, Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, model_validator

from simcore.config import RELATION_MAX, RELATION_MIN
from simcore.errors import KIND_INVALID_SNAPSHOT, KIND_MALFORMED_JSON, CorruptSaveError
from simcore.events import GameEvent
from simcore.tribe import TribeActionType, TribeState
from terrain.world import ResourceType, TileType

logger = logging.getLogger(__name__)

QUICKSAVE_SLOT = "quicksave"
AUTOSAVE_SLOT = "autosave"
_SLOT_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")


# ============================================================
# SNAPSHOT SCHEMAS
# ============================================================

class PositionModel(BaseModel):
    x: int
    y: int


class DepositModel(BaseModel):
    type: ResourceType
    amount: int = Field(ge=0)


class TileModel(BaseModel):
    type: TileType
    resources: List[DepositModel] = Field(default_factory=list)
    tribe_id: Optional[int] = None


class WorldModel(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    sea_level: float
    tiles: List[List[TileModel]]

    @model_validator(mode="after")
    def _check_shape(self) -> "WorldModel":
        if len(self.tiles) != self.height or any(len(row) != self.width for row in self.tiles):
            raise ValueError(f"tile grid does not match {self.width}x{self.height}")
        return self


class TribeConfigModel(BaseModel):
    id: int
    name: str
    is_player: bool
    color: str


Amount = Annotated[int, Field(ge=0)]
RelationValue = Annotated[int, Field(ge=RELATION_MIN, le=RELATION_MAX)]


class TribeModel(BaseModel):
    config: TribeConfigModel
    population: int = Field(ge=0)
    position: PositionModel
    resources: Dict[ResourceType, Amount]
    state: TribeState
    relations: List[Tuple[int, RelationValue]] = Field(default_factory=list)
    discovered_techs: List[str] = Field(default_factory=list)
    action_cooldown: int = Field(default=0, ge=0)
    last_action: Optional[TribeActionType] = None
    home_tile: Optional[PositionModel] = None


class GameSnapshot(BaseModel):
    world: WorldModel
    tribes: List[TribeModel]
    events: List[GameEvent] = Field(default_factory=list)
    event_counter: int = Field(default=0, ge=0)
    player_tribe_id: Optional[int] = None
    tick: int = Field(ge=0)
    is_paused: bool
    game_speed: int = Field(ge=0, le=3)
    last_save: float = 0.0


class SaveRecord(BaseModel):
    id: str
    name: str
    created_at: float
    updated_at: float
    state: GameSnapshot


# ============================================================
# GAME STORAGE
# ============================================================

class GameStorage:
    """File-backed slots. One JSON document per slot, written whole."""

    def __init__(self, root: Path, clock: Callable[[], float] = time.time) -> None:
        self.root = Path(root)
        self.saves_dir = self.root / "saves"
        self.settings_path = self.root / "settings.json"
        self.clock = clock
        self.saves_dir.mkdir(parents=True, exist_ok=True)

    def _slot_path(self, slot: str) -> Path:
        if not _SLOT_PATTERN.match(slot):
            raise ValueError(f"Invalid save slot name: {slot!r}")
        return self.saves_dir / f"{slot}.json"

    # ----------------------------------------------------------
    # Slots
    # ----------------------------------------------------------

    def save_game(self, slot: str, snapshot: GameSnapshot, name: Optional[str] = None) -> SaveRecord:
        path = self._slot_path(slot)
        now = self.clock()
        created_at = now
        if path.exists():
            try:
                existing = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                existing = None
            if isinstance(existing, dict):
                created_at = existing.get("created_at", now)
            else:
                logger.warning("Overwriting unreadable save slot '%s'", slot)

        record = SaveRecord(id=slot, name=name or slot, created_at=created_at, updated_at=now, state=snapshot)
        tmp_path = path.parent / (path.name + ".tmp")
        tmp_path.write_text(record.model_dump_json(), encoding="utf-8")
        tmp_path.replace(path)
        logger.info("Saved game to slot '%s'", slot)
        return record

    def load_record(self, slot: str) -> Optional[SaveRecord]:
        path = self._slot_path(slot)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CorruptSaveError(KIND_MALFORMED_JSON, slot, str(exc)) from exc

        try:
            return SaveRecord.model_validate(data)
        except ValidationError as exc:
            detail = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()[:3]
            )
            raise CorruptSaveError(KIND_INVALID_SNAPSHOT, slot, detail) from exc

    def load_game(self, slot: str) -> Optional[GameSnapshot]:
        record = self.load_record(slot)
        return record.state if record is not None else None

    def delete_save(self, slot: str) -> bool:
        path = self._slot_path(slot)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list_saves(self) -> List[Dict[str, Any]]:
        """Slot metadata (no state), most recently updated first. Unreadable files are skipped."""
        saves = []
        for path in sorted(self.saves_dir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.warning("Skipping unreadable save file %s", path.name)
                continue
            if not isinstance(data, dict):
                continue
            saves.append({
                "id": data.get("id", path.stem),
                "name": data.get("name", path.stem),
                "created_at": data.get("created_at"),
                "updated_at": data.get("updated_at"),
            })
        saves.sort(key=lambda s: s["updated_at"] or 0, reverse=True)
        return saves

    def autosave(self, snapshot: GameSnapshot) -> SaveRecord:
        return self.save_game(AUTOSAVE_SLOT, snapshot, name="Autosave")

    def quick_save(self, snapshot: GameSnapshot) -> SaveRecord:
        return self.save_game(QUICKSAVE_SLOT, snapshot, name="Quicksave")

    def get_quick_save(self) -> Optional[GameSnapshot]:
        return self.load_game(QUICKSAVE_SLOT)

    # ----------------------------------------------------------
    # Settings
    # ----------------------------------------------------------

    def _read_settings(self) -> Dict[str, Any]:
        if not self.settings_path.exists():
            return {}
        try:
            settings = json.loads(self.settings_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Settings file is unreadable; using defaults")
            return {}
        if not isinstance(settings, dict):
            logger.warning("Settings file is not a JSON object; using defaults")
            return {}
        return settings

    def get_setting(self, key: str, default: Any = None) -> Any:
        return self._read_settings().get(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        settings = self._read_settings()
        settings[key] = value
        self.settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
