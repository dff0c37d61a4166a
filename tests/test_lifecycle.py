"""
Unit tests for the offer/assignment state machines, pickup codes, the
partner approval gate and the impact math.
"""

import pytest
from fastapi import HTTPException

from app.core.lifecycle import (ALLOWED_OFFER_TRANSITIONS, OTP_MAX, OTP_MIN,
                                AssignmentStatus, InvalidTransition,
                                OfferStatus, ensure_assignment_transition,
                                ensure_offer_transition, generate_otp,
                                otp_matches)
from app.core.session import (PARTNER_PENDING_PATH, PARTNER_REJECTED_PATH,
                              GateDecision, PartnerGateError, SessionContext,
                              partner_gate)
from app.models.user import User
from app.services.analytics import co2_saved, meals_from_kg, quantity_in_kg
from app.services.approvals import validate_rejection_reason
from app.services.email import render_template
from app.services.geocoding import haversine_km


# ── Pickup codes ────────────────────────────────────────────────────
def test_generated_otps_are_six_digits_in_range():
    for _ in range(2000):
        code = generate_otp()
        assert len(code) == 6
        assert code.isascii() and code.isdigit()
        assert OTP_MIN <= int(code) <= OTP_MAX


def test_otp_matching_is_exact():
    assert otp_matches("123456", "123456")
    assert otp_matches("123456", " 123456 ")
    assert not otp_matches("123456", "123457")
    assert not otp_matches("123456", "12345")
    assert not otp_matches(None, "123456")


# ── State machines ──────────────────────────────────────────────────
def test_offer_happy_path_transitions():
    assert ensure_offer_transition("available", OfferStatus.ACCEPTED) is OfferStatus.ACCEPTED
    assert ensure_offer_transition("accepted", OfferStatus.DELIVERED) is OfferStatus.DELIVERED
    assert ensure_offer_transition("accepted", OfferStatus.AVAILABLE) is OfferStatus.AVAILABLE


@pytest.mark.parametrize(
    "current,target",
    [
        ("accepted", OfferStatus.ACCEPTED),
        ("delivered", OfferStatus.AVAILABLE),
        ("cancelled", OfferStatus.ACCEPTED),
        ("available", OfferStatus.DELIVERED),
        ("picked_up", OfferStatus.AVAILABLE),
    ],
)
def test_illegal_offer_transitions_raise(current, target):
    with pytest.raises(InvalidTransition) as exc:
        ensure_offer_transition(current, target)
    assert exc.value.current == current
    assert exc.value.target == target.value


def test_terminal_offer_states_have_no_exits():
    assert ALLOWED_OFFER_TRANSITIONS[OfferStatus.DELIVERED] == set()
    assert ALLOWED_OFFER_TRANSITIONS[OfferStatus.CANCELLED] == set()


def test_assignment_transitions():
    assert (
        ensure_assignment_transition("pending", AssignmentStatus.COMPLETED)
        is AssignmentStatus.COMPLETED
    )
    with pytest.raises(InvalidTransition):
        ensure_assignment_transition("cancelled", AssignmentStatus.COMPLETED)
    with pytest.raises(InvalidTransition):
        ensure_assignment_transition("completed", AssignmentStatus.CANCELLED)


# ── Approval gate ───────────────────────────────────────────────────
@pytest.mark.parametrize(
    "approved,decision",
    [
        (None, GateDecision.PENDING),
        (False, GateDecision.REJECTED),
        (True, GateDecision.PROCEED),
    ],
)
def test_partner_gate(approved, decision):
    assert partner_gate("partner", approved) is decision


@pytest.mark.parametrize("role", ["donor", "admin", "volunteer"])
@pytest.mark.parametrize("approved", [None, False, True])
def test_gate_ignores_non_partner_roles(role, approved):
    assert partner_gate(role, approved) is GateDecision.PROCEED


def test_gate_error_carries_redirect():
    assert PartnerGateError(GateDecision.PENDING).redirect == PARTNER_PENDING_PATH
    assert PartnerGateError(GateDecision.REJECTED).redirect == PARTNER_REJECTED_PATH


def test_session_dashboard_route():
    assert SessionContext(User(id=1, role="donor", approved=True)).dashboard == "/dashboard/donor"
    assert SessionContext(User(id=2, role="admin", approved=True)).dashboard == "/dashboard/admin"
    assert SessionContext(User(id=3, role="partner", approved=True)).dashboard == "/dashboard/partner"
    assert SessionContext(User(id=4, role="partner", approved=None)).dashboard == PARTNER_PENDING_PATH
    assert SessionContext(User(id=5, role="partner", approved=False)).dashboard == PARTNER_REJECTED_PATH


@pytest.mark.parametrize("reason", ["", "   ", "\n\t", None])
def test_blank_rejection_reason_refused_without_db(reason):
    # No session is involved: the check happens before any DB access
    with pytest.raises(HTTPException) as exc:
        validate_rejection_reason(reason)
    assert exc.value.status_code == 400
    assert exc.value.detail == "Please provide a rejection reason"


def test_rejection_reason_is_stripped():
    assert validate_rejection_reason("  incomplete documents ") == "incomplete documents"


# ── Helpers ─────────────────────────────────────────────────────────
def test_render_template_substitutes_known_placeholders():
    text = "Hi {{partner_name}}, {{ org_name }} is approved. {{unknown}}"
    out = render_template(text, {"partner_name": "Pat", "org_name": "City Food Bank"})
    assert out == "Hi Pat, City Food Bank is approved. {{unknown}}"


def test_impact_math():
    assert quantity_in_kg(5, "kg") == 5
    assert quantity_in_kg(10, "lbs") == pytest.approx(4.536)
    assert quantity_in_kg(12, "servings") == 0
    assert quantity_in_kg(None, "kg") == 0
    assert co2_saved(10) == 25.0
    assert meals_from_kg(10) == 20
    assert meals_from_kg(0.9) == 1


def test_haversine_distance():
    assert haversine_km(51.5074, -0.1278, 51.5074, -0.1278) == 0
    # London to Paris is roughly 344 km
    assert haversine_km(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(344, abs=5)
