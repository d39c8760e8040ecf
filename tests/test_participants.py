"""Tests for models/participants.py."""

import pytest

from conftest import person
from giftexchange.errors import ValidationError
from giftexchange.models.participants import (
    Participant,
    QuickPick,
    build_participant_or_raise,
    normalize_quick_pick_link,
)


def test_build_trims_fields_and_keeps_optional_ones():
    p = build_participant_or_raise(
        name=" Ann ", email=" ann@example.com ", spouse_name=" Bo ", wishlist="  socks\n",
        quick_picks=[("Book", "example.com/book"), ("", ""), ("Mug", "")],
    )
    assert p.name == "Ann"
    assert p.email == "ann@example.com"
    assert p.spouse_name == "Bo"
    assert p.wishlist == "socks"
    assert p.quick_picks == (QuickPick("Book", "https://example.com/book"), QuickPick("Mug", ""))


def test_blank_spouse_becomes_none():
    p = build_participant_or_raise(name="Ann", email="ann@example.com", spouse_name="   ")
    assert p.spouse_name is None


@pytest.mark.parametrize("name, email, message", [
    ("", "ann@example.com", "your name"),
    ("Ann", "", "your email"),
    ("Ann", "not-an-email", "complete email"),
    ("Ann Lee", "ann@example.com", "First name only"),
])
def test_build_rejects_bad_fields(name, email, message):
    with pytest.raises(ValidationError, match=message):
        build_participant_or_raise(name=name, email=email)


def test_build_rejects_duplicate_name_or_email():
    existing = [person("Ann")]
    with pytest.raises(ValidationError, match="already on the list"):
        build_participant_or_raise(name="ANN", email="other@example.com", existing=existing)
    with pytest.raises(ValidationError, match="already on the list"):
        build_participant_or_raise(name="Zoe", email="Ann@Example.com", existing=existing)


def test_build_rejects_unusable_quick_pick_link():
    with pytest.raises(ValidationError, match="Quick Pick 2"):
        build_participant_or_raise(
            name="Ann", email="ann@example.com", quick_picks=[("a", ""), ("b", "not a link")]
        )


def test_build_keeps_at_most_three_quick_picks():
    p = build_participant_or_raise(
        name="Ann", email="ann@example.com", quick_picks=[(str(i), "") for i in range(5)]
    )
    assert [q.title for q in p.quick_picks] == ["0", "1", "2"]


@pytest.mark.parametrize("raw, expected", [
    ("", ""),
    (None, ""),
    ("  ", ""),
    ("giftideas.com", "https://giftideas.com"),
    ("HTTP://shop.example/x", "HTTP://shop.example/x"),
    ("https://shop.example/item?id=1", "https://shop.example/item?id=1"),
])
def test_normalize_quick_pick_link(raw, expected):
    assert normalize_quick_pick_link(raw) == expected


def test_normalize_quick_pick_link_rejects_missing_host():
    with pytest.raises(ValueError):
        normalize_quick_pick_link("https://")


def test_record_round_trip_uses_store_keys():
    p = Participant(
        name="Ann", email="ann@example.com", spouse_name="Bo", wishlist="socks",
        quick_picks=(QuickPick("Book", "https://example.com"),), timestamp=123,
    )
    record = p.to_record()
    assert record["spouseName"] == "Bo"
    assert record["quickPicks"] == [{"title": "Book", "link": "https://example.com"}]
    assert Participant.from_record(record) == p


def test_from_record_tolerates_missing_fields():
    p = Participant.from_record({"name": "Ann", "spouseName": "", "quickPicks": None})
    assert p == Participant(name="Ann", email="")
