"""
Workflow execution tests through DocumentWorkflowService.

Every call commits or rolls back on its own session, so the assertions
below read state back through the service rather than a shared session.
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from portal_kernel.domain.documents import AuditVariant, DocumentKind, Role
from portal_kernel.exceptions import (
    BomShortageError,
    DocumentNotFoundError,
    ForbiddenError,
    InvalidTransitionError,
    ValidationError,
    VersionConflictError,
)
from portal_modules.inventory.config import InventoryConfig
from portal_services.document_service import DocumentWorkflowService
from tests.helpers import make_actor, make_line

D = Decimal


def _advance(service, document, steps):
    """Run ``[(action, actor, payload), ...]`` and return the final document."""
    for action, actor, payload in steps:
        document = service.request_transition(
            document.id, action, payload, document.version, actor,
        ).document
    return document


@pytest.fixture
def pending_po(service, po_factory, purchaser):
    po = po_factory()
    return service.request_transition(po.id, "submit", {}, po.version, purchaser).document


@pytest.fixture
def sent_po(service, pending_po, manager, purchaser):
    return _advance(service, pending_po, [
        ("approve", manager, {}),
        ("send", purchaser, {}),
    ])


class TestCreate:
    def test_initial_status_and_version(self, po_factory, purchaser):
        po = po_factory()
        assert po.status == "draft"
        assert po.version == 1
        assert po.requested_by == purchaser.id

    def test_numbers_are_sequential(self, po_factory):
        first, second = po_factory(), po_factory()
        assert first.number == "PO-2026-00001"
        assert second.number == "PO-2026-00002"

    def test_prefix_per_kind(self, service, sales_rep):
        so = service.create_document(DocumentKind.SALES_ORDER, sales_rep, lines=(make_line(),))
        assert so.number == "SO-2026-00001"

    def test_creation_audited(self, service, po_factory):
        po = po_factory()
        (entry,) = service.timeline(po.id)
        assert entry.action == "create"
        assert entry.label == "Purchase order created"
        assert entry.from_status is None
        assert entry.to_status == "draft"
        assert entry.version == 1

    def test_role_not_allowed_to_create(self, po_factory, customer):
        with pytest.raises(ForbiddenError):
            po_factory(actor=customer)

    def test_duplicate_line_numbers_rejected(self, po_factory):
        with pytest.raises(ValidationError):
            po_factory(lines=(make_line(1), make_line(1)))

    def test_unknown_warehouse_rejected(self, service, po_factory, purchaser):
        with pytest.raises(ValidationError) as exc_info:
            service.create_document(
                DocumentKind.PURCHASE_ORDER, purchaser, lines=(make_line(),), location="DBN",
            )
        assert exc_info.value.field == "location"
        assert po_factory().number == "PO-2026-00001"


class TestApproval:
    def test_scenario_c_purchaser_cannot_approve(self, service, pending_po):
        purchaser = make_actor(Role.PURCHASER)
        with pytest.raises(ForbiddenError):
            service.request_transition(pending_po.id, "approve", {}, pending_po.version, purchaser)

        unchanged = service.get_document(pending_po.id)
        assert unchanged.status == "pending_approval"
        assert unchanged.version == pending_po.version

    def test_manager_approves(self, service, pending_po, manager, clock):
        result = service.request_transition(pending_po.id, "approve", {}, pending_po.version, manager)
        assert result.new_status == "approved"
        assert result.new_version == pending_po.version + 1
        assert result.document.timestamps["approved_at"] == clock.now()
        assert result.audit_entry.variant == AuditVariant.SUCCESS
        assert result.audit_entry.from_status == "pending_approval"

    def test_self_approval_forbidden(self, service, po_factory, manager):
        po = po_factory(actor=manager)
        po = service.request_transition(po.id, "submit", {}, po.version, manager).document
        with pytest.raises(ForbiddenError):
            service.request_transition(po.id, "approve", {}, po.version, manager)

    def test_reject_requires_reason(self, service, pending_po, manager):
        with pytest.raises(ValidationError) as exc_info:
            service.request_transition(pending_po.id, "reject", {}, pending_po.version, manager)
        assert exc_info.value.field == "reason"

    def test_reject_records_reason(self, service, pending_po, manager):
        result = service.request_transition(
            pending_po.id, "reject", {"reason": " over budget "}, pending_po.version, manager,
        )
        assert result.new_status == "draft"
        assert result.document.rejection_reason == "over budget"
        assert result.audit_entry.detail == "over budget"

    def test_resubmission_clears_rejection_reason(self, service, pending_po, manager, purchaser):
        approved = _advance(service, pending_po, [
            ("reject", manager, {"reason": "wrong supplier"}),
            ("submit", purchaser, {}),
            ("approve", manager, {}),
        ])
        assert approved.status == "approved"
        assert approved.rejection_reason is None
        assert "rejected_at" in approved.timestamps


class TestExecutionErrors:
    def test_unknown_action(self, service, po_factory, purchaser):
        po = po_factory()
        with pytest.raises(InvalidTransitionError) as exc_info:
            service.request_transition(po.id, "receive", {}, po.version, purchaser)
        assert exc_info.value.status == "draft"
        assert exc_info.value.action == "receive"

    def test_unknown_document(self, service, purchaser):
        with pytest.raises(DocumentNotFoundError):
            service.request_transition(uuid4(), "submit", {}, 1, purchaser)

    def test_stale_version_leaves_document_unchanged(self, service, po_factory, purchaser):
        po = po_factory()
        service.request_transition(po.id, "submit", {}, po.version, purchaser)
        with pytest.raises(VersionConflictError) as exc_info:
            service.request_transition(po.id, "cancel", {"reason": "dup"}, po.version, purchaser)
        assert exc_info.value.actual_version == 2

        current = service.get_document(po.id)
        assert current.status == "pending_approval"
        assert current.version == 2
        assert current.cancel_reason is None
        assert len(service.timeline(po.id)) == 2

    def test_version_checked_before_guards(self, service, po_factory, customer):
        po = po_factory()
        with pytest.raises(VersionConflictError):
            service.request_transition(po.id, "submit", {}, po.version + 5, customer)

    def test_terminal_state_has_no_actions(self, service, po_factory, purchaser):
        po = po_factory()
        cancelled = service.request_transition(
            po.id, "cancel", {"reason": "not needed"}, po.version, purchaser,
        ).document
        assert service.available_actions(cancelled) == ()
        with pytest.raises(InvalidTransitionError):
            service.request_transition(po.id, "submit", {}, cancelled.version, purchaser)


class TestLineEffects:
    def test_add_line_appends(self, service, po_factory, purchaser):
        po = po_factory()
        product = uuid4()
        result = service.request_transition(
            po.id, "add_line",
            {"product_id": str(product), "quantity": "3", "unit_cost": "4.00"},
            po.version, purchaser,
        )
        assert result.new_status == "draft"
        (_, added) = result.document.lines
        assert added.line_number == 2
        assert added.product_id == product
        assert result.audit_entry.detail == "Line 2 added: 3"

    def test_add_line_rejects_non_positive(self, service, po_factory, purchaser):
        po = po_factory()
        with pytest.raises(ValidationError):
            service.request_transition(
                po.id, "add_line", {"product_id": str(uuid4()), "quantity": "0"},
                po.version, purchaser,
            )

    def test_partial_then_full_receipt(self, service, sent_po, warehouse_clerk):
        partial = service.request_transition(
            sent_po.id, "receive", {"quantities": {"1": "4"}}, sent_po.version, warehouse_clerk,
        )
        assert partial.new_status == "partially_received"
        assert partial.document.lines[0].quantity_received == D("4")

        full = service.request_transition(
            sent_po.id, "receive", {"quantities": {1: "6"}}, partial.new_version, warehouse_clerk,
        )
        assert full.new_status == "received"
        assert full.document.lines[0].quantity_received == D("10")
        assert "last_received_at" in full.document.timestamps

    def test_over_receipt_rejected(self, service, sent_po, warehouse_clerk):
        with pytest.raises(ValidationError):
            service.request_transition(
                sent_po.id, "receive", {"quantities": {"1": "11"}}, sent_po.version, warehouse_clerk,
            )
        assert service.get_document(sent_po.id).version == sent_po.version

    def test_receive_needs_quantities(self, service, sent_po, warehouse_clerk):
        with pytest.raises(ValidationError):
            service.request_transition(sent_po.id, "receive", {}, sent_po.version, warehouse_clerk)

    def test_zero_receipt_rejected(self, service, sent_po, warehouse_clerk):
        with pytest.raises(ValidationError) as exc_info:
            service.request_transition(
                sent_po.id, "receive", {"quantities": {"1": "0"}}, sent_po.version, warehouse_clerk,
            )
        assert exc_info.value.field == "quantities"
        current = service.get_document(sent_po.id)
        assert current.status == "sent"
        assert current.version == sent_po.version
        assert len(service.timeline(sent_po.id)) == sent_po.version

    def test_unknown_line_rejected(self, service, sent_po, warehouse_clerk):
        with pytest.raises(ValidationError, match="unknown line"):
            service.request_transition(
                sent_po.id, "receive", {"quantities": {"7": "1"}}, sent_po.version, warehouse_clerk,
            )


class TestSalesOrders:
    @pytest.fixture
    def ready_order(self, service, sales_rep):
        so = service.create_document(
            DocumentKind.SALES_ORDER, sales_rep,
            lines=(make_line(1, "10"), make_line(2, "4")),
        )
        return _advance(service, so, [
            ("confirm", sales_rep, {}),
            ("start_processing", sales_rep, {}),
            ("ready", sales_rep, {}),
        ])

    def test_ship_partial_then_complete(self, service, ready_order, sales_rep):
        partial = service.request_transition(
            ready_order.id, "ship", {"quantities": {"1": "10"}}, ready_order.version, sales_rep,
        )
        assert partial.new_status == "partially_shipped"
        done = service.request_transition(
            ready_order.id, "ship", {"quantities": {"2": "4"}}, partial.new_version, sales_rep,
        )
        assert done.new_status == "shipped"
        assert [line.quantity_dispatched for line in done.document.lines] == [D("10"), D("4")]

    def test_damaged_quantities_rejected_on_ship(self, service, ready_order, sales_rep):
        with pytest.raises(ValidationError) as exc_info:
            service.request_transition(
                ready_order.id, "ship",
                {"quantities": {"1": "1"}, "damaged": {"1": "5"}},
                ready_order.version, sales_rep,
            )
        assert exc_info.value.field == "damaged"
        assert service.get_document(ready_order.id).version == ready_order.version

    def test_hold_and_release_clears_reason(self, service, ready_order, sales_rep):
        held = service.request_transition(
            ready_order.id, "hold", {"reason": "credit check"}, ready_order.version, sales_rep,
        )
        assert held.new_status == "on_hold"
        assert held.document.hold_reason == "credit check"
        assert held.audit_entry.variant == AuditVariant.WARNING

        released = service.request_transition(
            ready_order.id, "release", {}, held.new_version, sales_rep,
        )
        assert released.new_status == "confirmed"
        assert released.document.hold_reason is None

    def test_timeline_in_version_order(self, service, ready_order):
        timeline = service.timeline(ready_order.id)
        assert [e.version for e in timeline] == [1, 2, 3, 4]
        assert [e.to_status for e in timeline] == [
            "draft", "confirmed", "processing", "ready_to_ship",
        ]
        assert all(a.timestamp <= b.timestamp for a, b in zip(timeline, timeline[1:]))


class TestJobCards:
    @pytest.fixture
    def job_card(self, service, warehouse_clerk, bom_lookup, inventory):
        finished, component = uuid4(), uuid4()
        bom_lookup.add_component(finished, component, D("2"))
        inventory.set_level(component, "JHB", on_hand=D("4"))
        card = service.create_document(
            DocumentKind.JOB_CARD, warehouse_clerk,
            lines=(make_line(1, "5", "0", product_id=finished),),
            location="JHB",
        )
        return card, component

    def test_start_blocked_by_shortage(self, service, job_card, warehouse_clerk):
        card, component = job_card
        with pytest.raises(BomShortageError) as exc_info:
            service.request_transition(card.id, "start", {}, card.version, warehouse_clerk)
        assert exc_info.value.short_products == [component]
        assert service.get_document(card.id).status == "pending"

    def test_start_when_stock_covers(self, service, job_card, warehouse_clerk, inventory):
        card, component = job_card
        inventory.set_level(component, "JHB", on_hand=D("10"))
        result = service.request_transition(card.id, "start", {}, card.version, warehouse_clerk)
        assert result.new_status == "in_progress"

    def test_missing_lookups_fail_closed(self, session_factory, clock, config, job_card, warehouse_clerk):
        card, _ = job_card
        bare = DocumentWorkflowService(session_factory, clock=clock, config=config)
        with pytest.raises(ValidationError):
            bare.request_transition(card.id, "start", {}, card.version, warehouse_clerk)

    def test_start_rejects_unconfigured_warehouse(
        self, session_factory, clock, config, inventory, bom_lookup, job_card, warehouse_clerk,
    ):
        card, component = job_card
        inventory.set_level(component, "JHB", on_hand=D("10"))
        cape_only = replace(config, inventory=InventoryConfig(warehouses=("CT",)))
        scoped = DocumentWorkflowService(
            session_factory, clock=clock, config=cape_only,
            inventory=inventory, bom_lookup=bom_lookup,
        )
        with pytest.raises(ValidationError) as exc_info:
            scoped.request_transition(card.id, "start", {}, card.version, warehouse_clerk)
        assert exc_info.value.field == "location"


class TestReturns:
    def test_receive_items_with_damage(self, service, customer, manager, warehouse_clerk):
        ra = service.create_document(
            DocumentKind.RETURN_AUTHORIZATION, customer, lines=(make_line(1, "3"),),
        )
        approved = service.request_transition(ra.id, "approve", {}, ra.version, manager).document
        result = service.request_transition(
            ra.id, "receive_items",
            {"quantities": {"1": "3"}, "damaged": {"1": "1"}},
            approved.version, warehouse_clerk,
        )
        assert result.new_status == "items_received"
        line = result.document.lines[0]
        assert line.quantity_received == D("3")
        assert line.quantity_damaged == D("1")
        assert "damaged" in result.audit_entry.detail

    def test_zero_receipt_rejected(self, service, customer, manager, warehouse_clerk):
        ra = service.create_document(
            DocumentKind.RETURN_AUTHORIZATION, customer, lines=(make_line(1, "3"),),
        )
        approved = service.request_transition(ra.id, "approve", {}, ra.version, manager).document
        with pytest.raises(ValidationError):
            service.request_transition(
                ra.id, "receive_items",
                {"quantities": {"1": "0"}, "damaged": {"1": "0"}},
                approved.version, warehouse_clerk,
            )
        assert service.get_document(ra.id).status == "approved"

    def test_customer_cannot_approve(self, service, customer):
        ra = service.create_document(DocumentKind.RETURN_AUTHORIZATION, customer, lines=(make_line(),))
        with pytest.raises(ForbiddenError):
            service.request_transition(ra.id, "approve", {}, ra.version, make_actor(Role.CUSTOMER))


class TestNotificationAndTracing:
    def test_notifier_failure_keeps_commit(self, session_factory, clock, config, po_factory, purchaser):
        class BrokenNotifier:
            def transition_committed(self, document, transition):
                raise RuntimeError("smtp down")

        po = po_factory()
        service = DocumentWorkflowService(
            session_factory, clock=clock, config=config, notifier=BrokenNotifier(),
        )
        result = service.request_transition(po.id, "submit", {}, po.version, purchaser)
        assert result.notification_error == "smtp down"
        assert service.get_document(po.id).status == "pending_approval"

    def test_notifier_called_after_commit(self, session_factory, clock, config, po_factory, purchaser):
        seen = []

        class RecordingNotifier:
            def transition_committed(self, document, transition):
                seen.append((document.status, transition.action))

        po = po_factory()
        service = DocumentWorkflowService(
            session_factory, clock=clock, config=config, notifier=RecordingNotifier(),
        )
        result = service.request_transition(po.id, "submit", {}, po.version, purchaser)
        assert result.notification_error is None
        assert seen == [("pending_approval", "submit")]

    def test_success_trace(self, service, po_factory, purchaser, captured_logs):
        po = po_factory()
        service.request_transition(po.id, "submit", {}, po.version, purchaser)
        traces = [r for r in captured_logs() if r["message"] == "workflow_transition"]
        assert traces[-1]["outcome"] == "success"
        assert traces[-1]["from_state"] == "draft"
        assert traces[-1]["to_state"] == "pending_approval"
        assert traces[-1]["document_id"] == str(po.id)

    def test_guard_failure_trace(self, service, pending_po, purchaser, captured_logs):
        with pytest.raises(ForbiddenError):
            service.request_transition(pending_po.id, "approve", {}, pending_po.version, purchaser)
        traces = [r for r in captured_logs() if r["message"] == "workflow_transition"]
        assert traces[-1]["outcome"] == "guard_failed"
        assert traces[-1]["reason"].startswith("FORBIDDEN")
