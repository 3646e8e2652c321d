# Overview: Pytest coverage for the stock ledger.

import pytest

from tokopos.errors import InsufficientStock, NotFoundError, ProductNotInWarehouse, ValidationError
from tokopos.models import Product, StockMovement, WarehouseProduct
from tokopos.services import stock_service
from tokopos.services.concurrency import run_atomic


class TestAggregateLines:

    def test_duplicates_are_summed(self):
        lines = [{"product_id": 1, "quantity": 2}, {"productId": 2, "quantity": 1}, {"product_id": 1, "quantity": 3}]
        assert stock_service.aggregate_lines(lines) == {1: 5, 2: 1}

    @pytest.mark.parametrize("quantity", [0, -2, "3", True])
    def test_bad_quantity(self, quantity):
        with pytest.raises(ValidationError):
            stock_service.aggregate_lines([{"product_id": 1, "quantity": quantity}])

    def test_empty(self):
        with pytest.raises(ValidationError):
            stock_service.aggregate_lines([])


class TestStoreStock:

    def test_decrement_all_lines(self, db_session, store, make_product):
        a = make_product(store, "A", stock=10)
        b = make_product(store, "B", stock=4)

        run_atomic(lambda: stock_service.decrement_store_stock(
            store.id,
            [{"product_id": a.id, "quantity": 3}, {"product_id": b.id, "quantity": 4}],
            reference="INV-TEST",
        ))

        assert stock_service.get_store_stock(store.id, a.id) == 7
        assert stock_service.get_store_stock(store.id, b.id) == 0
        movements = db_session.query(StockMovement).filter_by(reference="INV-TEST").all()
        assert sorted(m.quantity_delta for m in movements) == [-4, -3]
        assert all(m.movement_type == stock_service.MOVEMENT_SALE for m in movements)

    def test_shortage_changes_nothing(self, db_session, store, make_product):
        a = make_product(store, "A", stock=10)
        b = make_product(store, "B", stock=1, name="Kopi")

        with pytest.raises(InsufficientStock) as exc:
            run_atomic(lambda: stock_service.decrement_store_stock(
                store.id,
                [{"product_id": a.id, "quantity": 3}, {"product_id": b.id, "quantity": 1}, {"product_id": b.id, "quantity": 1}],
            ))

        assert exc.value.shortages == [{
            "product_id": b.id,
            "product_name": "Kopi",
            "available": 1,
            "requested": 2,
            "shortfall": 1,
        }]
        assert db_session.get(Product, a.id).stock == 10
        assert db_session.get(Product, b.id).stock == 1
        assert db_session.query(StockMovement).count() == 0

    def test_reports_every_shortage(self, db_session, store, make_product):
        a = make_product(store, "A", stock=1)
        b = make_product(store, "B", stock=0)

        with pytest.raises(InsufficientStock) as exc:
            run_atomic(lambda: stock_service.decrement_store_stock(
                store.id,
                [{"product_id": a.id, "quantity": 2}, {"product_id": b.id, "quantity": 1}],
            ))
        assert {s["product_id"] for s in exc.value.shortages} == {a.id, b.id}

    def test_product_of_another_store(self, db_session, store, head_office, make_product):
        foreign = make_product(head_office, "X", stock=5)
        with pytest.raises(NotFoundError):
            run_atomic(lambda: stock_service.decrement_store_stock(store.id, [{"product_id": foreign.id, "quantity": 1}]))


class TestWarehouseStock:

    def test_decrement(self, db_session, warehouse, head_office, make_product, stock_warehouse):
        p = make_product(head_office, "P", stock=0)
        stock_warehouse(p, 20)

        run_atomic(lambda: stock_service.decrement_warehouse_stock(
            warehouse.id, [{"product_id": p.id, "quantity": 8}], reference="D-TEST",
        ))

        assert stock_service.get_warehouse_stock(warehouse.id, p.id) == 12
        movement = db_session.query(StockMovement).filter_by(reference="D-TEST").one()
        assert movement.warehouse_id == warehouse.id
        assert movement.store_id is None
        assert movement.movement_type == stock_service.MOVEMENT_DISTRIBUTION_OUT

    def test_shortage(self, db_session, warehouse, head_office, make_product, stock_warehouse):
        p = make_product(head_office, "P", stock=0)
        stock_warehouse(p, 5)

        with pytest.raises(InsufficientStock) as exc:
            run_atomic(lambda: stock_service.decrement_warehouse_stock(warehouse.id, [{"product_id": p.id, "quantity": 8}]))

        assert exc.value.details["location"] == "warehouse"
        assert stock_service.get_warehouse_stock(warehouse.id, p.id) == 5

    def test_product_not_in_warehouse(self, db_session, warehouse, head_office, make_product):
        p = make_product(head_office, "P", stock=0)
        with pytest.raises(ProductNotInWarehouse) as exc:
            run_atomic(lambda: stock_service.decrement_warehouse_stock(warehouse.id, [{"product_id": p.id, "quantity": 1}]))
        assert exc.value.product_ids == [p.id]

    def test_increment_creates_row(self, db_session, warehouse, head_office, make_product):
        p = make_product(head_office, "P", stock=0)

        run_atomic(lambda: stock_service.increment_warehouse_stock(
            warehouse.id, p.id, 15, reference="SEED", movement_type=stock_service.MOVEMENT_RESTOCK,
        ))

        row = db_session.query(WarehouseProduct).filter_by(warehouse_id=warehouse.id, product_id=p.id).one()
        assert row.quantity == 15
        assert db_session.query(StockMovement).filter_by(movement_type=stock_service.MOVEMENT_RESTOCK).count() == 1
        assert stock_service.get_warehouse_stock(warehouse.id, 999999) == 0
