"""Tests for the membership registry."""

import random

import pytest

from coopchat.membership import MembershipRegistry, Participant, RoleError


def test_list_all_keeps_insertion_order():
    registry = MembershipRegistry()
    for pid in ("c", "a", "b"):
        registry.add_or_ignore(Participant(id=pid, name=pid.upper()))

    assert [p.id for p in registry.list_all()] == ["c", "a", "b"]


def test_duplicate_add_is_noop():
    registry = MembershipRegistry()
    assert registry.add_or_ignore(Participant(id="a", name="Ann")) is True
    assert registry.add_or_ignore(Participant(id="a", name="Other")) is False

    assert len(registry) == 1
    assert registry.get("a").name == "Ann"


def test_remove_unknown_returns_none():
    registry = MembershipRegistry()
    assert registry.remove("ghost") is None


def test_second_host_is_refused_but_kept_as_client():
    registry = MembershipRegistry()
    registry.add_or_ignore(Participant(id="a", name="Ann", is_host=True))

    with pytest.raises(RoleError):
        registry.add_or_ignore(Participant(id="b", name="Ben", is_host=True))

    assert registry.host.id == "a"
    assert "b" in registry
    assert registry.get("b").is_host is False


def test_replace_discards_previous_roster():
    registry = MembershipRegistry()
    registry.add_or_ignore(Participant(id="old", name="Old"))

    refused = registry.replace([
        Participant(id="a", name="Ann", is_host=True),
        Participant(id="b", name="Ben", is_host=True),
    ])

    assert [p.id for p in registry.list_all()] == ["a", "b"]
    assert refused == ["b"]
    assert registry.host.id == "a"


def test_random_join_leave_sequences_match_reference_set():
    rng = random.Random(7)
    ids = [f"user_{i}" for i in range(6)]

    for _ in range(50):
        registry = MembershipRegistry()
        expected = set()
        for _ in range(30):
            pid = rng.choice(ids)
            if rng.random() < 0.6:
                registry.add_or_ignore(Participant(id=pid, is_host=rng.random() < 0.2 and not expected))
                expected.add(pid)
            else:
                registry.remove(pid)
                expected.discard(pid)

            assert {p.id for p in registry.list_all()} == expected
            assert sum(p.is_host for p in registry.list_all()) <= 1
