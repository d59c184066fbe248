"""Tests for aetheria.models."""

import pytest
from pydantic import ValidationError

from aetheria.models import (
    Character,
    ChatMessage,
    GameStage,
    Item,
    LocationNode,
    LoreEntry,
    Npc,
    Quest,
    RollInfo,
    SessionState,
    disposition_bucket,
)


def _character(**overrides) -> Character:
    fields = dict(
        name="Aldric", race="Human", occupation="Ferryman", background="Delta born.",
        height="Tall", build="Wiry", strengths=("Patient", "Swimmer", "Perceptive"),
        weakness="Debt",
    )
    fields.update(overrides)
    return Character(**fields)


class TestCharacter:
    def test_exactly_three_strengths(self) -> None:
        with pytest.raises(ValidationError):
            _character(strengths=("Patient", "Swimmer"))
        with pytest.raises(ValidationError):
            _character(strengths=("a", "b", "c", "d"))

    def test_frozen(self) -> None:
        c = _character()
        with pytest.raises(ValidationError):
            c.name = "Someone else"


class TestDisposition:
    @pytest.mark.parametrize("text,bucket", [
        ("Hostile", "hostile"),
        ("Sworn enemy", "hostile"),
        ("Friendly", "friendly"),
        ("Reluctant ally", "friendly"),
        ("Indebted", "friendly"),
        ("Wary", "neutral"),
        ("", "neutral"),
    ])
    def test_buckets(self, text: str, bucket: str) -> None:
        assert disposition_bucket(text) == bucket

    def test_npc_property(self) -> None:
        assert Npc(id="n1", name="Mira", disposition="ENEMY of the crown").disposition_bucket == "hostile"


class TestItem:
    def test_quantity_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Item(id="i1", name="Arrow", quantity=0)

    def test_invalid_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Item(id="i1", name="Arrow", type="Gadget")


class TestSessionState:
    def test_defaults(self) -> None:
        state = SessionState()
        assert state.stage == GameStage.LOADING
        assert state.character is None
        assert state.messages == []
        assert state.status.world_name is None

    def test_snapshot_roundtrip(self) -> None:
        state = SessionState(
            character=_character(),
            stage=GameStage.PLAYING,
            messages=[
                ChatMessage(id="m1", role="model", text="Prologue."),
                ChatMessage(
                    id="m2", role="system", text="CHECK: Swim [DC:40]",
                    roll=RollInfo(result=71, dc=40, outcome="Success"),
                ),
            ],
            lore=[LoreEntry(id="l1", title="Vessa", type="God", description="Dust.")],
            locations=[LocationNode(
                name="Grayhold", type="City", coordinates={"x": -3, "y": 8}, description="Walls.",
            )],
            npcs=[Npc(id="n1", name="Mira", disposition="Wary")],
            inventory=[Item(id="i1", name="Rope", quantity=2, is_equipped=True)],
            quests=[Quest(id="q1", title="Salt Road", objectives=["Meet Oskar"])],
        )
        snapshot = state.snapshot()
        assert snapshot["stage"] == "Playing"
        assert snapshot["character"]["strengths"] == ["Patient", "Swimmer", "Perceptive"]

        restored = SessionState.restore(snapshot)
        assert restored == state
        assert [m.id for m in restored.messages] == ["m1", "m2"]

    def test_restore_rejects_garbage(self) -> None:
        with pytest.raises(ValidationError):
            SessionState.restore({"stage": "Dancing"})
        with pytest.raises(ValidationError):
            SessionState.restore([1, 2, 3])
