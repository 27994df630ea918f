from __future__ import annotations

import pytest

from nowbot.access_gate import AccessGate
from nowbot.membership import MembershipLookupError
from nowbot.sponsors import SponsorChannel, SponsorPolicy, StaticSponsorConfigStore


class FakeLookup:
    """answers: handle -> True / False / an exception to raise."""

    def __init__(self, answers: dict):
        self.answers = dict(answers)
        self.calls: list[tuple[int, str]] = []

    def is_member(self, subscriber_id, handle):
        self.calls.append((subscriber_id, handle))
        answer = self.answers[handle]
        if isinstance(answer, Exception):
            raise answer
        return answer


def make_gate(lookup, *, required=True, require_all=True, channels=("alpha", "beta")):
    policy = SponsorPolicy(
        bot_name="nowbot",
        require_subscription=required,
        require_all_channels=require_all,
        channels=tuple(c if isinstance(c, SponsorChannel) else SponsorChannel(handle=c) for c in channels),
    )
    return AccessGate(config_store=StaticSponsorConfigStore({"nowbot": policy}), lookup=lookup, now=lambda: 1000.0)


def test_not_required_allows_without_lookups():
    lookup = FakeLookup({"alpha": False, "beta": False})
    allowed, channels = make_gate(lookup, required=False).check_access(42, "nowbot")

    assert allowed is True
    assert channels == []
    assert lookup.calls == []


def test_unknown_bot_is_not_gated():
    lookup = FakeLookup({})
    assert make_gate(lookup).check_access(42, "otherbot").allowed is True
    assert lookup.calls == []


def test_expired_or_inactive_channels_are_ignored():
    lookup = FakeLookup({"alpha": False})
    gate = make_gate(
        lookup,
        channels=(SponsorChannel("alpha", expires_at=999.0), SponsorChannel("beta", active=False)),
    )
    decision = gate.check_access(42, "nowbot")

    assert decision.allowed is True
    assert decision.evaluated_channels == []
    assert lookup.calls == []


def test_missing_lookup_allows():
    assert make_gate(None).check_access(42, "nowbot").allowed is True


@pytest.mark.parametrize(
    "answers, expected",
    [
        ({"alpha": True, "beta": True}, True),
        ({"alpha": True, "beta": False}, False),
        ({"alpha": False, "beta": False}, False),
    ],
)
def test_all_of_policy(answers, expected):
    lookup = FakeLookup(answers)
    allowed, channels = make_gate(lookup, require_all=True).check_access(42, "nowbot")

    assert allowed is expected
    assert channels == ["alpha", "beta"]
    assert [h for _, h in lookup.calls] == ["alpha", "beta"]


def test_any_of_allows_on_single_membership():
    lookup = FakeLookup({"alpha": False, "beta": True})
    allowed, channels = make_gate(lookup, require_all=False).check_access(42, "nowbot")

    assert allowed is True
    assert channels == ["alpha", "beta"]


def test_any_of_stops_at_first_membership():
    lookup = FakeLookup({"alpha": True, "beta": False})
    assert make_gate(lookup, require_all=False).check_access(42, "nowbot").allowed is True
    assert [h for _, h in lookup.calls] == ["alpha"]


def test_any_of_denies_when_member_of_none():
    lookup = FakeLookup({"alpha": False, "beta": False})
    allowed, channels = make_gate(lookup, require_all=False).check_access(42, "nowbot")
    assert allowed is False
    assert channels == ["alpha", "beta"]


def test_every_lookup_failing_fails_open(capsys):
    lookup = FakeLookup({"alpha": MembershipLookupError("down"), "beta": MembershipLookupError("down")})
    decision = make_gate(lookup).check_access(42, "nowbot")

    assert decision.allowed is True
    assert decision.degraded is True
    assert decision.evaluated_channels == []
    assert "degraded_check" in capsys.readouterr().out


def test_all_of_only_enforces_channels_that_could_be_checked():
    errored_then_member = FakeLookup({"alpha": MembershipLookupError("down"), "beta": True})
    assert make_gate(errored_then_member).check_access(42, "nowbot").allowed is True

    errored_then_missing = FakeLookup({"alpha": MembershipLookupError("down"), "beta": False})
    decision = make_gate(errored_then_missing).check_access(42, "nowbot")
    assert decision.allowed is False
    assert decision.degraded is False


def test_decision_is_recomputed_every_call():
    lookup = FakeLookup({"alpha": False, "beta": True})
    gate = make_gate(lookup)
    assert gate.check_access(42, "nowbot").allowed is False

    lookup.answers["alpha"] = True
    assert gate.check_access(42, "nowbot").allowed is True
    assert len(lookup.calls) == 4
