import json
import random

import pytest

from simcore.config import SimulationConfig
from simcore.errors import KIND_INVALID_SNAPSHOT, KIND_MALFORMED_JSON, CorruptSaveError
from simcore.loop import SimulationLoop
from simcore.storage import AUTOSAVE_SLOT, QUICKSAVE_SLOT, GameStorage
from terrain.world import Tile, TileType, World


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_snapshot():
    config = SimulationConfig(max_tribes=4, event_chance=0.0)
    sim = SimulationLoop(config=config, rng=random.Random(3))
    world = World(8, 6, [[Tile(TileType.GRASS) for _ in range(8)] for _ in range(6)])
    sim.init(world=world)
    sim.tick()
    return sim.export_state()


def test_save_and_load_round_trip(tmp_path):
    storage = GameStorage(tmp_path)
    snapshot = make_snapshot()
    storage.save_game("slot1", snapshot, name="First")
    assert storage.load_game("slot1") == snapshot
    assert (tmp_path / "saves" / "slot1.json").exists()


def test_missing_slot_is_none(tmp_path):
    assert GameStorage(tmp_path).load_game("nothing") is None


def test_malformed_json(tmp_path):
    storage = GameStorage(tmp_path)
    (tmp_path / "saves" / "broken.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(CorruptSaveError) as info:
        storage.load_game("broken")
    assert info.value.kind == KIND_MALFORMED_JSON
    assert info.value.slot == "broken"


def test_undecodable_bytes_are_malformed(tmp_path):
    storage = GameStorage(tmp_path)
    (tmp_path / "saves" / "garbled.json").write_bytes(b"\xff\xfe\x00garbage")
    with pytest.raises(CorruptSaveError) as info:
        storage.load_game("garbled")
    assert info.value.kind == KIND_MALFORMED_JSON
    assert storage.list_saves() == []


@pytest.mark.parametrize("contents", [b"[]", b"\xff\xfe\x00garbage"])
def test_overwrite_unreadable_slot(tmp_path, contents):
    clock = FakeClock(42.0)
    storage = GameStorage(tmp_path, clock=clock)
    (tmp_path / "saves" / "s.json").write_bytes(contents)
    record = storage.save_game("s", make_snapshot())
    assert record.created_at == 42.0
    assert storage.load_record("s").created_at == 42.0


def test_relation_bounds_are_accepted(tmp_path):
    storage = GameStorage(tmp_path)
    storage.save_game("edge", make_snapshot())
    path = tmp_path / "saves" / "edge.json"
    record = json.loads(path.read_text(encoding="utf-8"))
    record["state"]["tribes"][0]["relations"] = [[2, -100], [3, 100]]
    path.write_text(json.dumps(record), encoding="utf-8")
    assert storage.load_game("edge").tribes[0].relations == [(2, -100), (3, 100)]


@pytest.mark.parametrize("mutate", [
    lambda state: state.pop("tick"),
    lambda state: state["tribes"][0].pop("population"),
    lambda state: state["tribes"][0].update(population=-5),
    lambda state: state["tribes"][0].update(state="wandering"),
    lambda state: state["world"]["tiles"].pop(),
    lambda state: state.update(game_speed=9),
    lambda state: state["tribes"][0]["resources"].update(food=-500),
    lambda state: state["tribes"][0].update(relations=[[2, 9999]]),
    lambda state: state["tribes"][0].update(relations=[[2, -101]]),
    lambda state: state["tribes"][0].update(action_cooldown=-1),
])
def test_invalid_snapshot(tmp_path, mutate):
    storage = GameStorage(tmp_path)
    storage.save_game("bad", make_snapshot())
    path = tmp_path / "saves" / "bad.json"
    record = json.loads(path.read_text(encoding="utf-8"))
    mutate(record["state"])
    path.write_text(json.dumps(record), encoding="utf-8")

    with pytest.raises(CorruptSaveError) as info:
        storage.load_game("bad")
    assert info.value.kind == KIND_INVALID_SNAPSHOT


def test_created_at_survives_overwrite(tmp_path):
    clock = FakeClock(100.0)
    storage = GameStorage(tmp_path, clock=clock)
    snapshot = make_snapshot()
    storage.save_game("s", snapshot)
    clock.now = 250.0
    record = storage.save_game("s", snapshot)
    assert record.created_at == 100.0
    assert record.updated_at == 250.0
    assert storage.load_record("s").created_at == 100.0


def test_list_and_delete(tmp_path):
    clock = FakeClock(10.0)
    storage = GameStorage(tmp_path, clock=clock)
    snapshot = make_snapshot()
    storage.quick_save(snapshot)
    clock.now = 20.0
    storage.autosave(snapshot)
    (tmp_path / "saves" / "junk.json").write_text("???", encoding="utf-8")

    saves = storage.list_saves()
    assert [s["id"] for s in saves] == [AUTOSAVE_SLOT, QUICKSAVE_SLOT]
    assert saves[0]["name"] == "Autosave"

    assert storage.get_quick_save() == snapshot
    assert storage.delete_save(QUICKSAVE_SLOT)
    assert not storage.delete_save(QUICKSAVE_SLOT)
    assert storage.get_quick_save() is None


def test_slot_names_are_validated(tmp_path):
    storage = GameStorage(tmp_path)
    with pytest.raises(ValueError):
        storage.load_game("../escape")


def test_settings(tmp_path):
    storage = GameStorage(tmp_path)
    assert storage.get_setting("camera") is None
    assert storage.get_setting("camera", {"x": 0}) == {"x": 0}
    storage.set_setting("camera", {"x": 3.0, "y": 4.0, "zoom": 0.5})
    storage.set_setting("volume", 7)
    reopened = GameStorage(tmp_path)
    assert reopened.get_setting("camera") == {"x": 3.0, "y": 4.0, "zoom": 0.5}
    assert reopened.get_setting("volume") == 7


def test_unreadable_settings_fall_back_to_defaults(tmp_path):
    storage = GameStorage(tmp_path)
    storage.settings_path.write_bytes(b"\xff\xfe")
    assert storage.get_setting("camera", "default") == "default"
    storage.settings_path.write_text("[1, 2]", encoding="utf-8")
    assert storage.get_setting("camera") is None
    storage.set_setting("volume", 3)
    assert storage.get_setting("volume") == 3
