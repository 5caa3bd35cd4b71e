"""
Unit Tests for planning records and stage counters
"""
import pytest
from decimal import Decimal

from app.exceptions import DuplicateError, NotFoundError, ValidationError
from app.schemas.planning import OrderCreate, ProductCreate, StageCreate
from app.services import planning, stage_tracker
from tests.factories import create_test_order, create_test_product, create_test_stage


class TestProductsAndOrders:

    def test_create_product(self, db):
        product = planning.create_product(db, ProductCreate(sku=" GB-1 ", name="Gear Box"))

        assert product.id is not None
        assert product.sku == "GB-1"
        assert [p.id for p in planning.list_products(db)] == [product.id]

    def test_duplicate_sku(self, db):
        planning.create_product(db, ProductCreate(sku="GB-1", name="Gear Box"))

        with pytest.raises(DuplicateError):
            planning.create_product(db, ProductCreate(sku="GB-1", name="Other"))

    def test_create_order(self, db):
        product = create_test_product(db)
        db.commit()

        order = planning.create_order(
            db, OrderCreate(order_number="ORD-9", product_id=product.id, quantity=50)
        )

        assert order.status == "new"
        assert order.quantity == Decimal("50")
        assert planning.get_order(db, order.id).order_number == "ORD-9"

    def test_order_for_unknown_product(self, db):
        with pytest.raises(NotFoundError):
            planning.create_order(db, OrderCreate(order_number="ORD-9", product_id=999, quantity=5))

    def test_duplicate_order_number(self, db):
        product = create_test_product(db)
        db.commit()
        planning.create_order(db, OrderCreate(order_number="ORD-9", product_id=product.id, quantity=5))

        with pytest.raises(DuplicateError):
            planning.create_order(db, OrderCreate(order_number="ORD-9", product_id=product.id, quantity=5))


class TestCreateStage:

    def test_defaults_from_order(self, db):
        order = create_test_order(db, quantity=40, order_number="ORD-3")
        db.commit()

        stage = planning.create_stage(db, StageCreate(
            order_id=order.id,
            name="Assembly",
            inputs=[{"source_stage_name": " Parts ", "ratio": 2}],
        ))

        assert stage.title == "ORD-3 - Assembly"
        assert stage.planned_quantity == Decimal("40")
        assert stage.status == "todo"
        assert stage.kind == "production"
        assert [(i.source_stage_name, i.ratio, i.sequence) for i in stage.inputs] == [
            ("Parts", Decimal("2"), 1)
        ]

    def test_single_final_stage_per_order(self, db):
        order = create_test_order(db)
        create_test_stage(db, order=order, name="Packing", is_final_stage=True)
        db.commit()

        with pytest.raises(ValidationError, match="final stage"):
            planning.create_stage(db, StageCreate(order_id=order.id, name="Ship", is_final_stage=True))

    def test_stage_cannot_consume_itself(self, db):
        order = create_test_order(db)
        db.commit()

        with pytest.raises(ValidationError):
            planning.create_stage(db, StageCreate(
                order_id=order.id,
                name="Parts",
                inputs=[{"source_stage_name": "Parts", "ratio": 1}],
            ))

    def test_unknown_order(self, db):
        with pytest.raises(NotFoundError):
            planning.create_stage(db, StageCreate(order_id=999, name="Parts"))

    def test_list_order_stages(self, db):
        order = create_test_order(db)
        first = create_test_stage(db, order=order, name="Parts")
        archived = create_test_stage(db, order=order, name="Old", status="archived")
        db.commit()

        assert [s.id for s in planning.list_order_stages(db, order.id)] == [first.id, archived.id]
        assert [s.id for s in planning.list_order_stages(db, order.id, include_archived=False)] == [first.id]


class TestOrderProgress:

    def test_uses_flagged_final_stage(self, db):
        order = create_test_order(db, quantity=40)
        create_test_stage(db, order=order, name="Packing", is_final_stage=True,
                          completed_quantity=Decimal("10"))
        create_test_stage(db, order=order, name="Label", completed_quantity=Decimal("40"))
        db.commit()

        progress = planning.order_progress(db, order)

        assert progress["percent"] == 25
        assert progress["completed_quantity"] == Decimal("10")

    def test_falls_back_to_newest_stage_and_caps(self, db):
        order = create_test_order(db, quantity=10)
        create_test_stage(db, order=order, name="Parts", completed_quantity=Decimal("1"))
        newest = create_test_stage(db, order=order, name="Assembly", completed_quantity=Decimal("12"))
        db.commit()

        progress = planning.order_progress(db, order)

        assert progress["final_stage_id"] == newest.id
        assert progress["percent"] == 100

    def test_no_stages(self, db):
        order = create_test_order(db)
        db.commit()

        assert planning.order_progress(db, order)["percent"] == 0


class TestStageCounters:

    def test_first_submission_starts_stage(self, db):
        order = create_test_order(db)
        stage = create_test_stage(db, order=order, name="Parts")

        stage_tracker.add_pending(stage, Decimal("3"))

        assert stage.status == "in_progress"
        assert stage.pending_quantity == Decimal("3")

    def test_status_derivation(self, db):
        order = create_test_order(db)
        stage = create_test_stage(db, order=order, name="Parts", planned_quantity=Decimal("10"))

        stage.completed_quantity = Decimal("9")
        assert stage_tracker.derive_stage_status(stage) == "in_progress"
        stage.completed_quantity = Decimal("10")
        assert stage_tracker.derive_stage_status(stage) == "done"
        stage.planned_quantity = Decimal("0")
        assert stage_tracker.derive_stage_status(stage) == "in_progress"
        stage.status = "archived"
        assert stage_tracker.derive_stage_status(stage) == "archived"

    def test_get_stage_missing(self, db):
        with pytest.raises(NotFoundError):
            stage_tracker.get_stage(db, 12345)
