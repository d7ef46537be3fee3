import pytest

from simcore.tech import (
    TechEra,
    can_afford,
    can_research,
    get_available_techs,
    get_tech,
    get_tech_tree,
    get_techs_by_era,
    load_tech_tree,
    pay_cost,
)


def test_bundled_tree_loads():
    tree = get_tech_tree()
    assert len(tree) == 12
    assert list(tree)[:2] == ["basic_tools", "fire"]
    assert get_tech_tree() is tree


def test_get_tech():
    mining = get_tech("mining")
    assert mining.name == "Mining"
    assert mining.era is TechEra.BRONZE_AGE
    assert mining.effect.target == "stone"
    assert mining.cost.amounts() == {"food": 150, "wood": 50}
    assert get_tech("time_travel") is None


def test_can_research_checks_prerequisites():
    assert can_research(set(), "fire")
    assert not can_research(set(), "spear")
    assert can_research({"basic_tools"}, "spear")
    assert not can_research({"basket"}, "agriculture")
    assert can_research({"basic_tools", "basket", "shelter"}, "agriculture")
    assert not can_research({"fire"}, "fire")
    assert not can_research(set(), "unknown")


def test_available_techs():
    assert [t.id for t in get_available_techs(set())] == ["basic_tools", "fire"]
    after_tools = {t.id for t in get_available_techs({"basic_tools"})}
    assert after_tools == {"fire", "spear", "basket", "shelter", "mining"}


def test_techs_by_era():
    assert len(get_techs_by_era(TechEra.STONE_AGE)) == 5
    assert len(get_techs_by_era("bronze_age")) == 4
    assert {t.id for t in get_techs_by_era(TechEra.IRON_AGE)} == {"bronze_working", "writing", "iron_working"}


def test_afford_and_pay():
    spear = get_tech("spear")
    wallet = {"food": 100, "wood": 30, "stone": 0, "metal": 0}
    assert can_afford(wallet, spear)
    assert pay_cost(wallet, spear)
    assert wallet == {"food": 20, "wood": 0, "stone": 0, "metal": 0}
    assert not pay_cost(wallet, spear)
    assert wallet["food"] == 20


def test_missing_tree_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_tech_tree(tmp_path / "nope.toml")


def test_unknown_prerequisite_rejected(tmp_path):
    path = tmp_path / "techs.toml"
    path.write_text(
        '[[techs]]\n'
        'id = "a"\nname = "A"\ndescription = "x"\nera = "stone_age"\n'
        'prerequisites = ["ghost"]\n'
        'effect = { type = "storage", value = 1.0 }\n',
        encoding="utf-8",
    )
    with pytest.raises(ValueError):
        load_tech_tree(path)
