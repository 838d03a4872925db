# Overview: Pytest coverage for the sales process status state machine.

import pytest

from salesflow.errors import InvalidDataError, InvalidStageError, InvalidTransitionError
from salesflow.services import process_states as states


class TestLinkTransitions:
    """next_status() for each link event."""

    @pytest.mark.parametrize("current", ["draft", "quotation"])
    def test_quotation_link_moves_to_quotation(self, current):
        assert states.next_status(current, states.QUOTATION_LINKED) == "quotation"

    @pytest.mark.parametrize("current", ["draft", "quotation", "sales_order"])
    def test_sales_order_link_moves_to_sales_order(self, current):
        assert states.next_status(current, states.SALES_ORDER_LINKED) == "sales_order"

    def test_purchase_order_advances_sales_order(self):
        assert states.next_status("sales_order", states.PURCHASE_ORDER_LINKED) == "purchase"

    @pytest.mark.parametrize("current", ["sales_order", "purchase"])
    def test_delivery_advances_to_delivery(self, current):
        assert states.next_status(current, states.DELIVERY_LINKED) == "delivery"

    @pytest.mark.parametrize("current", ["sales_order", "purchase", "delivery", "invoicing"])
    def test_unpaid_invoice_moves_to_invoicing(self, current):
        assert states.next_status(current, states.INVOICE_LINKED) == "invoicing"

    @pytest.mark.parametrize("current", ["sales_order", "purchase", "delivery", "invoicing", "payment"])
    def test_paid_invoice_completes(self, current):
        assert states.next_status(current, states.PAID_INVOICE_LINKED) == "completed"

    @pytest.mark.parametrize("current,event", [
        ("invoicing", states.PURCHASE_ORDER_LINKED),
        ("invoicing", states.QUOTATION_LINKED),
        ("delivery", states.SALES_ORDER_LINKED),
        ("completed", states.INVOICE_LINKED),
        ("payment", states.DELIVERY_LINKED),
    ])
    def test_earlier_stage_events_never_regress(self, current, event):
        """A link belonging to an earlier stage keeps the current status."""
        assert states.next_status(current, event) == current

    @pytest.mark.parametrize("current,event", [
        ("draft", states.PURCHASE_ORDER_LINKED),
        ("quotation", states.DELIVERY_LINKED),
        ("draft", states.INVOICE_LINKED),
        ("cancelled", states.QUOTATION_LINKED),
        ("cancelled", states.PAID_INVOICE_LINKED),
    ])
    def test_undefined_pairs_are_rejected(self, current, event):
        with pytest.raises(InvalidTransitionError) as exc_info:
            states.next_status(current, event)
        assert exc_info.value.current_status == current
        assert exc_info.value.event == event

    def test_unknown_event(self):
        with pytest.raises(InvalidDataError):
            states.next_status("draft", "shipped")

    def test_every_transition_is_forward(self):
        for (current, _event), target in states.TRANSITIONS.items():
            assert states.stage_rank(target) >= states.stage_rank(current)


class TestExplicitStatusUpdates:

    def test_same_status_is_allowed(self):
        assert states.can_transition("purchase", "purchase")

    def test_forward_moves_allowed(self):
        assert states.can_transition("invoicing", "payment")
        assert states.can_transition("draft", "completed")

    def test_backward_moves_rejected(self):
        assert not states.can_transition("delivery", "quotation")

    @pytest.mark.parametrize("current", sorted(states.ACTIVE_STATUSES))
    def test_cancel_from_any_active_status(self, current):
        assert states.can_transition(current, "cancelled")

    @pytest.mark.parametrize("terminal", ["completed", "cancelled"])
    def test_terminal_states_cannot_be_left(self, terminal):
        assert not states.can_transition(terminal, "draft")
        with pytest.raises(InvalidTransitionError):
            states.require_transition(terminal, "payment")

    def test_unknown_status_is_invalid_data(self):
        with pytest.raises(InvalidDataError):
            states.can_transition("draft", "archived")


class TestStageHelpers:

    def test_validate_stage(self):
        assert states.validate_stage("delivery") == "delivery"
        with pytest.raises(InvalidStageError):
            states.validate_stage("shipping")

    def test_reached_rank_of_cancelled_uses_linked_documents(self):
        assert states.reached_rank("cancelled", {"quotation", "sales_order"}) == states.stage_rank("sales_order")
        assert states.reached_rank("cancelled") == 0

    def test_reached_rank_of_active_is_its_status(self):
        assert states.reached_rank("delivery", {"quotation"}) == states.stage_rank("delivery")

    def test_status_vocabulary(self):
        assert states.VALID_STATUSES == {
            "draft", "quotation", "sales_order", "purchase", "delivery",
            "invoicing", "payment", "completed", "cancelled",
        }
        assert states.ACTIVE_STATUSES == states.VALID_STATUSES - {"completed", "cancelled"}
