"""Unit tests for offer state machine guards and derived fields"""

import uuid
import pytest
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from offer_gateway.domain.exceptions import (
    ForbiddenError,
    PreconditionFailedError,
    ValidationFailureError,
)
from offer_gateway.domain.lifecycle import (
    build_reference_code,
    can_transition,
    contribution_reward,
    initials,
    plan_accept,
    plan_allocate,
    plan_assign,
    plan_cancel,
    plan_reactivate,
    plan_reject,
    plan_resolve,
    validate_terms,
)
from offer_gateway.domain.models import EnquiryApproval, OfferDraft, OfferStatus

NOW = datetime(2020, 2, 20, 9, 0, tzinfo=timezone.utc)
ENQUIRY = uuid.uuid4()


def offer(status=OfferStatus.GENERATED, expires=NOW + timedelta(days=7)):
    return SimpleNamespace(
        status=status,
        buyer_id="buyer-1",
        seller_id="seller-1",
        enquiry_id=ENQUIRY,
        total_amount_payable=100000,
        expires=expires,
    )


def draft(**overrides) -> OfferDraft:
    values = dict(
        enquiry_id=ENQUIRY,
        seller_id="seller-1",
        hand_over_date=date(2020, 3, 1),
        initial_payment_date=date(2020, 3, 1),
        total_amount_payable=100000,
        initial_payment=50000,
        periodic_payment=10000,
        payment_frequency=30,
        expires=NOW + timedelta(days=30),
    )
    values.update(overrides)
    return OfferDraft(**values)


class TestTransitionTable:
    def test_happy_path_edges(self):
        assert can_transition(OfferStatus.GENERATED, OfferStatus.INTERESTED)
        assert can_transition(OfferStatus.INTERESTED, OfferStatus.ASSIGNED)
        assert can_transition(OfferStatus.ASSIGNED, OfferStatus.ALLOCATED)
        assert can_transition(OfferStatus.ALLOCATED, OfferStatus.RESOLVED)

    def test_terminal_states_have_no_exits(self):
        for target in OfferStatus:
            assert not can_transition(OfferStatus.RESOLVED, target)
            assert not can_transition(OfferStatus.REACTIVATED, target)

    def test_no_way_back_to_generated(self):
        assert all(not can_transition(status, OfferStatus.GENERATED) for status in OfferStatus)


class TestValidateTerms:
    def test_valid_draft_passes(self):
        validate_terms(draft(), NOW)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"total_amount_payable": 0},
            {"initial_payment": -1},
            {"initial_payment": 100001},
            {"periodic_payment": 0},
            {"payment_frequency": 0},
            {"allocation_in_percentage": 101},
            {"expires": NOW},
            {"expires": NOW - timedelta(days=1)},
        ],
    )
    def test_malformed_terms_rejected(self, overrides):
        with pytest.raises(ValidationFailureError):
            validate_terms(draft(**overrides), NOW)

    def test_naive_expiry_treated_as_utc(self):
        validate_terms(draft(expires=datetime(2020, 3, 1)), NOW)


class TestReferenceCode:
    def test_initials(self):
        assert initials("Lekki Ville Estate") == "LVE"
        assert initials("maisonette") == "M"
        assert initials("Semi-detached Duplex") == "SDD"

    def test_format(self):
        code = build_reference_code("HIG", "Lekki Ville Estate", "Maisonette", 0, NOW)
        assert code == "HIG/LVE/OLM/01/20022020"

    def test_running_number_follows_prior_offers(self):
        code = build_reference_code("HIG", "Lekki Ville Estate", "Terrace Duplex", 11, NOW)
        assert code == "HIG/LVE/OLTD/12/20022020"


class TestAccept:
    def test_accept_records_signature_and_reward(self):
        transition = plan_accept(offer(), "buyer-1", "J. Doe", 120000, NOW)

        assert transition.target == OfferStatus.INTERESTED
        assert transition.changes["signature"] == "J. Doe"
        assert transition.changes["contribution_reward"] == 20000
        assert transition.changes["response_date"] == NOW

    def test_other_user_cannot_accept(self):
        with pytest.raises(ForbiddenError, match="another user"):
            plan_accept(offer(), "buyer-2", "sig", 120000, NOW)

    def test_cancelled_offer_cannot_be_accepted(self):
        with pytest.raises(PreconditionFailedError, match="cancelled"):
            plan_accept(offer(OfferStatus.CANCELLED), "buyer-1", "sig", 120000, NOW)

    def test_expired_offer_cannot_be_accepted(self):
        with pytest.raises(PreconditionFailedError, match="expired"):
            plan_accept(offer(expires=NOW - timedelta(seconds=1)), "buyer-1", "sig", 120000, NOW)

    def test_already_accepted_offer_cannot_be_accepted_again(self):
        with pytest.raises(PreconditionFailedError):
            plan_accept(offer(OfferStatus.INTERESTED), "buyer-1", "sig", 120000, NOW)

    def test_reward_never_negative(self):
        assert contribution_reward(90000, 100000) == 0
        assert contribution_reward(120000, 100000) == 20000


class TestCancel:
    @pytest.mark.parametrize(
        "status",
        [OfferStatus.INTERESTED, OfferStatus.ASSIGNED, OfferStatus.ALLOCATED, OfferStatus.RESOLVED],
    )
    def test_accepted_offer_cannot_be_cancelled(self, status):
        with pytest.raises(PreconditionFailedError, match="You cannot cancel an accepted offer"):
            plan_cancel(offer(status), "seller-1")

    def test_cancel_releases_enquiry(self):
        transition = plan_cancel(offer(), "seller-1")

        assert transition.target == OfferStatus.CANCELLED
        assert transition.enquiry_action == EnquiryApproval(ENQUIRY, approved=False, by="seller-1")

    def test_rejected_offer_can_be_cancelled(self):
        assert plan_cancel(offer(OfferStatus.REJECTED), "seller-1").target == OfferStatus.CANCELLED

    def test_cancelled_offer_cannot_be_cancelled_again(self):
        with pytest.raises(PreconditionFailedError, match="cannot move from Cancelled to Cancelled"):
            plan_cancel(offer(OfferStatus.CANCELLED), "seller-1")

    def test_only_seller_can_cancel(self):
        with pytest.raises(ForbiddenError):
            plan_cancel(offer(), "buyer-1")


class TestOtherTransitions:
    def test_assign_requires_acceptance(self):
        with pytest.raises(PreconditionFailedError, match="accepted before it can be assigned"):
            plan_assign(offer(), NOW)
        assert plan_assign(offer(OfferStatus.INTERESTED), NOW).changes == {"date_assigned": NOW}

    def test_allocate_requires_assignment(self):
        with pytest.raises(PreconditionFailedError):
            plan_allocate(offer(OfferStatus.INTERESTED))
        assert plan_allocate(offer(OfferStatus.ASSIGNED)).target == OfferStatus.ALLOCATED

    def test_reject_by_buyer_keeps_enquiry(self):
        transition = plan_reject(offer(), "buyer-1", NOW)

        assert transition.target == OfferStatus.REJECTED
        assert transition.enquiry_action is None

    def test_reactivate_from_rejected(self):
        assert plan_reactivate(offer(OfferStatus.REJECTED), "seller-1").target == OfferStatus.REACTIVATED

    def test_reactivate_refused_once_accepted(self):
        with pytest.raises(PreconditionFailedError):
            plan_reactivate(offer(OfferStatus.INTERESTED), "seller-1")

    def test_resolve_skips_withdrawn_offers(self):
        assert plan_resolve(offer(OfferStatus.CANCELLED)) is None
        assert plan_resolve(offer(OfferStatus.ALLOCATED)).target == OfferStatus.RESOLVED
