import datetime
import enum
import json
import threading
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

import pytest
from pydantic import BaseModel, ValidationError

from jsonwrap import (
    ReferenceLoopError,
    Serializer,
    Settings,
    StructureError,
    default_settings,
    get_serializer,
    register,
)
from jsonwrap import serializer as serializer_module


class Element(enum.Enum):
    FIRE = "fire"
    ICE = "ice"


@dataclass
class Spell:
    element: Element
    cost: Decimal
    spell_id: uuid.UUID
    tags: set[str]
    position: tuple[int, int]
    scores: dict[int, float]
    cast_at: datetime.datetime | None = None


class Item(BaseModel):
    name: str


class Weapon(Item):
    damage: int


class Bag(BaseModel):
    items: list[Item]
    owner: str | None = None


@register("tests.Potion")
@dataclass
class Potion:
    heal: int


@dataclass(frozen=True)
class Coin:
    value: int
    label: str = field(init=False, default="")


class Journal:
    started: datetime.date

    def __init__(self, started, entries):
        self.started = started
        self.entries = entries


class Loop:
    def __init__(self):
        self.me = self


def test_scalar_leaves_round_trip():
    s = Serializer()
    spell = Spell(
        element=Element.ICE,
        cost=Decimal("1.50"),
        spell_id=uuid.UUID("12345678-1234-5678-1234-567812345678"),
        tags={"aoe", "cold"},
        position=(3, -4),
        scores={1: 0.5, 2: 1.0},
        cast_at=datetime.datetime(2024, 1, 2, 3, 4, 5),
    )

    doc = json.loads(s.dumps(spell))
    assert doc["element"] == "ice"
    assert doc["position"] == [3, -4]
    assert doc["scores"] == {"1": 0.5, "2": 1.0}

    assert s.loads(s.dumps(spell), Spell) == spell


def test_pydantic_models_keep_subclasses():
    s = Serializer()
    bag = Bag(items=[Item(name="rope"), Weapon(name="axe", damage=7)], owner="Gimli")

    restored = s.loads(s.dumps(bag), Bag)
    assert type(restored) is Bag
    assert restored.owner == "Gimli"
    assert [type(i) for i in restored.items] == [Item, Weapon]
    assert restored.items[1].damage == 7


def test_pydantic_missing_required_field():
    with pytest.raises(StructureError, match="damage"):
        Serializer().loads('{"name": "axe"}', Weapon)


def test_registered_alias_is_written_and_resolved():
    s = Serializer()
    text = s.dumps(Potion(heal=5))
    assert json.loads(text)["$type"] == "tests.Potion"
    assert s.loads(text) == Potion(heal=5)


def test_alias_cannot_be_reused_for_another_class():
    with pytest.raises(ValueError):
        register("tests.Potion")(Coin)


def test_init_false_fields_are_restored():
    coin = Coin(5)
    object.__setattr__(coin, "label", "gold")
    s = Serializer()
    restored = s.loads(s.dumps(coin), Coin)
    assert restored.value == 5
    assert restored.label == "gold"


def test_plain_objects_use_class_annotations():
    s = Serializer()
    journal = Journal(datetime.date(2021, 6, 1), ["arrived", "left"])

    restored = s.loads(s.dumps(journal), Journal)
    assert type(restored) is Journal
    assert restored.started == datetime.date(2021, 6, 1)
    assert restored.entries == ["arrived", "left"]


def test_union_prefers_exact_json_kind():
    s = Serializer()
    assert s.loads('"5"', int | str) == "5"
    assert s.loads("5", int | str) == 5
    assert s.loads("null", int | None) is None
    with pytest.raises(StructureError):
        s.loads("[1]", int | str)


def test_container_hints():
    s = Serializer()
    assert s.loads("[1, 2, 3]", list[int]) == [1, 2, 3]
    assert s.loads("[1, 2]", frozenset[int]) == frozenset({1, 2})
    assert s.loads('{"a": [1]}', dict[str, tuple[int, ...]]) == {"a": (1,)}
    with pytest.raises(StructureError):
        s.loads('{"a": 1}', list[int])
    with pytest.raises(StructureError):
        s.loads("[1, 2, 3]", tuple[int, int])


def test_without_type_names():
    s = Serializer(Settings(type_names="none"))
    text = s.dumps(Potion(heal=2))
    assert "$type" not in text
    assert s.loads(text, Potion) == Potion(heal=2)
    assert s.loads(text) == {"heal": 2}


def test_compact_output():
    text = Serializer(Settings(indent=None)).dumps(Potion(heal=2))
    assert "\n" not in text


def test_custom_type_key():
    s = Serializer(Settings(type_key="__class__"))
    text = s.dumps(Potion(heal=2))
    assert json.loads(text)["__class__"] == "tests.Potion"
    assert s.loads(text) == Potion(heal=2)


def test_loop_error_policy():
    with pytest.raises(ReferenceLoopError):
        Serializer(Settings(reference_loops="error")).dumps(Loop())
    assert json.loads(Serializer().dumps(Loop())) == {"$type": f"{Loop.__module__}:Loop"}


def test_settings_are_frozen():
    with pytest.raises(ValidationError):
        default_settings().indent = 4


def test_default_settings_environment(monkeypatch):
    monkeypatch.setenv("JSONWRAP_INDENT", "none")
    monkeypatch.setenv("JSONWRAP_REFERENCE_LOOPS", "ERROR")
    monkeypatch.setenv("JSONWRAP_RESOURCE_PACKAGE", "mygame.data")
    settings = default_settings()
    assert settings.indent is None
    assert settings.reference_loops == "error"
    assert settings.resource_package == "mygame.data"
    assert settings.type_names == "objects"


def test_shared_serializer_is_reused():
    assert get_serializer() is get_serializer()
    assert get_serializer().settings.reference_loops == "ignore"


def test_shared_serializer_built_once_under_concurrent_first_use(monkeypatch):
    monkeypatch.setattr(serializer_module, "_serializer", None)
    calls = []
    real = serializer_module.default_settings

    def slow_settings():
        calls.append(1)
        time.sleep(0.05)
        return real()

    monkeypatch.setattr(serializer_module, "default_settings", slow_settings)
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(get_serializer())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)
