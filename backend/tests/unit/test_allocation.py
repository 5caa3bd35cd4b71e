"""
Unit Tests for the Consumption Allocator

Tests:
1. Pending reservations are derived from pending reports only
2. Candidate batch discovery (order, stage name, status, manual postings)
3. Draft-time consumption plan
4. Validation of a worker's batch picks and shortfall handling
"""
import warnings

import pytest
from decimal import Decimal

from app.exceptions import InsufficientSupplyWarning, NotFoundError, ValidationError
from app.schemas.production_report import ProductionReportCreate
from app.services import allocation, report_store
from tests.factories import (
    create_assembly_route,
    create_test_order,
    create_test_report,
    create_test_stage,
)


def _submit(db, stage, quantity, picks=None):
    data = ProductionReportCreate(
        stage_id=stage.id,
        quantity=quantity,
        source_batches=[{"source_report_id": rid, "quantity": qty} for rid, qty in (picks or [])],
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", InsufficientSupplyWarning)
        return report_store.submit_report(db, data, worker_id="worker-1")


class TestPendingReserved:

    def test_sums_pending_reports_only(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100, batch_code="P-1")
        create_test_report(db, route["assembly"], quantity=10, status="pending",
                           consumption={batch.id: Decimal("20")})
        create_test_report(db, route["assembly"], quantity=5, status="pending",
                           consumption={batch.id: Decimal("10")})
        create_test_report(db, route["assembly"], quantity=5, status="rejected",
                           consumption={batch.id: Decimal("10")})
        create_test_report(db, route["assembly"], quantity=5, status="approved",
                           consumption={batch.id: Decimal("10")})
        db.commit()

        reserved = allocation.pending_reserved(db, [batch.id])

        assert reserved == {batch.id: Decimal("30")}

    def test_unreserved_batches_absent(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100)
        db.commit()

        assert allocation.pending_reserved(db, [batch.id]) == {}
        assert allocation.pending_reserved(db, []) == {}

    def test_available_now(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100, used_quantity=30)
        db.commit()

        assert allocation.available_now(batch, Decimal("50")) == Decimal("20")
        assert allocation.available_now(batch) == Decimal("70")


class TestFindCandidateBatches:

    def test_matches_order_and_trimmed_stage_name(self, db):
        route = create_assembly_route(db)
        mine = create_test_report(db, route["parts"], quantity=100, batch_code="P-1")

        other_order = create_test_order(db)
        other_parts = create_test_stage(db, order=other_order, name="Parts")
        create_test_report(db, other_parts, quantity=100, batch_code="X-1")
        db.commit()

        candidates = allocation.find_candidate_batches(db, route["order"].id, "  Parts ")

        assert [c.report_id for c in candidates] == [mine.id]
        assert candidates[0].available_now == Decimal("100")

    def test_excludes_unapproved_and_exhausted(self, db):
        route = create_assembly_route(db)
        parts = route["parts"]
        create_test_report(db, parts, quantity=50, status="pending")
        create_test_report(db, parts, quantity=50, status="rejected")
        create_test_report(db, parts, quantity=50, used_quantity=50)
        reserved = create_test_report(db, parts, quantity=40)
        create_test_report(db, route["assembly"], quantity=20, status="pending",
                           consumption={reserved.id: Decimal("40")})
        free = create_test_report(db, parts, quantity=30, used_quantity=10)
        db.commit()

        candidates = allocation.find_candidate_batches(db, route["order"].id, "Parts")

        assert [c.report_id for c in candidates] == [free.id]
        assert candidates[0].available_now == Decimal("20")

    def test_manual_postings_need_batch_code(self, db):
        route = create_assembly_route(db)
        create_test_report(db, route["parts"], quantity=10, kind="manual_stock", batch_code=None)
        labelled = create_test_report(db, route["parts"], quantity=10, kind="manual_stock",
                                      batch_code="M-1")
        db.commit()

        candidates = allocation.find_candidate_batches(db, route["order"].id, "Parts")

        assert [c.report_id for c in candidates] == [labelled.id]

    def test_write_off_caps_batch_availability(self, db):
        route = create_assembly_route(db)
        p1 = create_test_report(db, route["parts"], quantity=100, batch_code="P-1")
        create_test_report(db, route["parts"], quantity=-60, batch_code="P-1", kind="manual_deduction")
        other = create_test_report(db, route["parts"], quantity=10, batch_code="P-2")
        db.commit()

        candidates = allocation.find_candidate_batches(db, route["order"].id, "Parts")

        assert [(c.report_id, c.available_now) for c in candidates] == [
            (p1.id, Decimal("40")), (other.id, Decimal("10"))]

    def test_group_cap_shared_between_reports_of_one_batch(self, db):
        route = create_assembly_route(db)
        first = create_test_report(db, route["parts"], quantity=30, batch_code="P-1")
        second = create_test_report(db, route["parts"], quantity=30, batch_code="P-1")
        create_test_report(db, route["parts"], quantity=-40, batch_code="P-1", kind="manual_deduction")
        db.commit()

        candidates = allocation.find_candidate_batches(db, route["order"].id, "Parts")

        assert [(c.report_id, c.available_now) for c in candidates] == [(first.id, Decimal("20"))]
        assert second.id not in [c.report_id for c in candidates]


class TestGroupFree:

    def test_produced_less_used_and_reserved(self, db):
        route = create_assembly_route(db)
        parts = route["parts"]
        p1 = create_test_report(db, parts, quantity=100, batch_code="P-1", used_quantity=10)
        create_test_report(db, parts, quantity=-5, batch_code="P-1", kind="manual_deduction")
        create_test_report(db, parts, quantity=7, batch_code=None, kind="manual_stock")
        create_test_report(db, route["assembly"], quantity=15, status="pending",
                           consumption={p1.id: Decimal("30")})
        db.commit()

        free = allocation.group_free(db, [parts.id])

        assert free[(parts.id, "P-1")] == Decimal("55")
        assert free[(parts.id, "-")] == Decimal("7")

    def test_no_stages(self, db):
        assert allocation.group_free(db, [None]) == {}


class TestPlanConsumption:

    def test_total_needed_and_available(self, db):
        route = create_assembly_route(db, ratio=Decimal("2"))
        create_test_report(db, route["parts"], quantity=100, batch_code="P-1")
        create_test_report(db, route["parts"], quantity=30, batch_code="P-2")
        db.commit()

        plans = allocation.plan_consumption(db, route["assembly"].id, Decimal("40"))

        assert len(plans) == 1
        plan = plans[0]
        assert plan.source_stage_name == "Parts"
        assert plan.total_needed == Decimal("80")
        assert plan.total_available == Decimal("130")
        assert [c.batch_code for c in plan.candidates] == ["P-1", "P-2"]

    def test_stage_without_inputs_has_empty_plan(self, db):
        route = create_assembly_route(db)
        db.commit()

        assert allocation.plan_consumption(db, route["parts"].id, Decimal("5")) == []

    def test_unknown_stage(self, db):
        with pytest.raises(NotFoundError):
            allocation.plan_consumption(db, 999, Decimal("5"))

    def test_negative_quantity_rejected(self, db):
        route = create_assembly_route(db)
        db.commit()

        with pytest.raises(ValidationError):
            allocation.plan_consumption(db, route["assembly"].id, Decimal("-1"))


class TestResolveAllocations:

    def test_pick_without_quantity_draws_what_is_needed(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100)
        db.commit()

        result = allocation.resolve_allocations(db, route["assembly"], Decimal("10"), [(batch.id, None)])

        assert result.source_consumption == {batch.id: Decimal("20")}
        assert result.shortfalls == []

    def test_picks_are_applied_in_order(self, db):
        route = create_assembly_route(db)
        first = create_test_report(db, route["parts"], quantity=15, batch_code="P-1")
        second = create_test_report(db, route["parts"], quantity=100, batch_code="P-2")
        db.commit()

        result = allocation.resolve_allocations(
            db, route["assembly"], Decimal("10"), [(first.id, None), (second.id, None)]
        )

        assert result.source_consumption == {first.id: Decimal("15"), second.id: Decimal("5")}

    def test_explicit_quantity_over_availability(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100)
        create_test_report(db, route["assembly"], quantity=45, status="pending",
                           consumption={batch.id: Decimal("90")})
        db.commit()

        with pytest.raises(ValidationError, match="at most 10"):
            allocation.resolve_allocations(db, route["assembly"], Decimal("10"), [(batch.id, Decimal("15"))])

    def test_written_off_units_cannot_be_drawn(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100, batch_code="P-1")
        create_test_report(db, route["parts"], quantity=-50, batch_code="P-1", kind="manual_deduction")
        db.commit()

        with pytest.raises(ValidationError, match="at most 50"):
            allocation.resolve_allocations(db, route["assembly"], Decimal("50"), [(batch.id, Decimal("100"))])

        result = allocation.resolve_allocations(db, route["assembly"], Decimal("50"), [(batch.id, None)])
        assert result.source_consumption == {batch.id: Decimal("50")}
        assert result.total_shortfall == Decimal("50")

    def test_picks_share_the_batch_group(self, db):
        route = create_assembly_route(db)
        first = create_test_report(db, route["parts"], quantity=30, batch_code="P-1")
        second = create_test_report(db, route["parts"], quantity=30, batch_code="P-1")
        create_test_report(db, route["parts"], quantity=-20, batch_code="P-1", kind="manual_deduction")
        db.commit()

        result = allocation.resolve_allocations(
            db, route["assembly"], Decimal("30"), [(first.id, None), (second.id, None)]
        )

        assert result.source_consumption == {first.id: Decimal("30"), second.id: Decimal("10")}

    def test_explicit_quantity_over_remaining_need(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100)
        db.commit()

        with pytest.raises(ValidationError):
            allocation.resolve_allocations(db, route["assembly"], Decimal("5"), [(batch.id, Decimal("11"))])

    def test_non_positive_quantity(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100)
        db.commit()

        with pytest.raises(ValidationError):
            allocation.resolve_allocations(db, route["assembly"], Decimal("5"), [(batch.id, Decimal("0"))])

    def test_duplicate_pick(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100)
        db.commit()

        with pytest.raises(ValidationError, match="more than once"):
            allocation.resolve_allocations(
                db, route["assembly"], Decimal("5"), [(batch.id, Decimal("2")), (batch.id, Decimal("2"))]
            )

    def test_missing_batch(self, db):
        route = create_assembly_route(db)
        db.commit()

        with pytest.raises(NotFoundError):
            allocation.resolve_allocations(db, route["assembly"], Decimal("5"), [(4242, None)])

    def test_unapproved_batch(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100, status="pending")
        db.commit()

        with pytest.raises(ValidationError, match="not an approved batch"):
            allocation.resolve_allocations(db, route["assembly"], Decimal("5"), [(batch.id, None)])

    def test_batch_of_other_order(self, db):
        route = create_assembly_route(db)
        other = create_assembly_route(db)
        batch = create_test_report(db, other["parts"], quantity=100)
        db.commit()

        with pytest.raises(ValidationError, match="another order"):
            allocation.resolve_allocations(db, route["assembly"], Decimal("5"), [(batch.id, None)])

    def test_batch_of_unrelated_stage(self, db):
        route = create_assembly_route(db)
        paint = create_test_stage(db, order=route["order"], name="Paint")
        batch = create_test_report(db, paint, quantity=100)
        db.commit()

        with pytest.raises(ValidationError, match="does not match"):
            allocation.resolve_allocations(db, route["assembly"], Decimal("5"), [(batch.id, None)])

    def test_picks_on_stage_without_inputs(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100)
        db.commit()

        with pytest.raises(ValidationError, match="no input requirements"):
            allocation.resolve_allocations(db, route["parts"], Decimal("5"), [(batch.id, None)])

    def test_shortfall_is_returned(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=12)
        db.commit()

        result = allocation.resolve_allocations(db, route["assembly"], Decimal("10"), [(batch.id, None)])

        assert result.source_consumption == {batch.id: Decimal("12")}
        assert len(result.shortfalls) == 1
        assert result.shortfalls[0].shortfall == Decimal("8")
        assert result.total_shortfall == Decimal("8")
        assert result.shortfalls[0].to_dict() == {
            "source_stage_name": "Parts",
            "total_needed": 20.0,
            "selected": 12.0,
            "shortfall": 8.0,
        }

    def test_no_picks_is_full_shortfall(self, db):
        route = create_assembly_route(db)
        db.commit()

        result = allocation.resolve_allocations(db, route["assembly"], Decimal("3"), [])

        assert result.allocations == []
        assert result.total_shortfall == Decimal("6")

    def test_shortfall_refused_in_strict_mode(self, db, strict_allocation):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=12)
        db.commit()

        with pytest.raises(ValidationError) as exc_info:
            allocation.resolve_allocations(db, route["assembly"], Decimal("10"), [(batch.id, None)])

        assert exc_info.value.details["shortfalls"][0]["shortfall"] == 8.0


class TestSubmissionReservations:
    """Reservations recorded by submission feed later availability reads"""

    def test_second_draft_sees_first_reservation(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=100, batch_code="P-1")
        db.commit()

        _submit(db, route["assembly"], 40, [(batch.id, Decimal("80"))])
        plans = allocation.plan_consumption(db, route["assembly"].id, Decimal("15"))

        assert plans[0].candidates[0].reserved == Decimal("80")
        assert plans[0].candidates[0].available_now == Decimal("20")

    def test_submission_emits_insufficient_supply_warning(self, db):
        route = create_assembly_route(db)
        batch = create_test_report(db, route["parts"], quantity=10)
        db.commit()

        data = ProductionReportCreate(
            stage_id=route["assembly"].id,
            quantity=10,
            source_batches=[{"source_report_id": batch.id}],
        )
        with pytest.warns(InsufficientSupplyWarning) as record:
            report, shortfalls = report_store.submit_report(db, data, worker_id="worker-1")

        supply_warnings = [w.message for w in record if isinstance(w.message, InsufficientSupplyWarning)]
        assert len(supply_warnings) == 1
        assert supply_warnings[0].total_shortfall == Decimal("10")
        assert shortfalls[0].source_stage_name == "Parts"
        assert report.supply_shortfall == Decimal("10")
        assert report.status == "pending"
