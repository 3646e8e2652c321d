# Overview: Threaded concurrency tests against a file-backed SQLite database.

"""
Concurrency tests for the transactional core.

Each test runs real threads against one temporary SQLite file so that
BEGIN IMMEDIATE locking is exercised the way production requests hit it.
"""
import os
import sqlite3
import tempfile
import threading
import time
import unittest

from tokopos import create_app
from tokopos.errors import InsufficientStock, TransactionTimeout
from tokopos.extensions import db
from tokopos.models import (
    DistributionBatch,
    Member,
    PriceTier,
    Product,
    Receivable,
    Sale,
    Store,
    User,
    Warehouse,
    WarehouseProduct,
)
from tokopos.services import distribution_service, provisioning_service, receivable_service, sales_service
from tokopos.services.concurrency import run_atomic


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{self.db_path}",
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            store = Store(name="Toko Konkuren", code="KON", is_active=True)
            db.session.add(store)
            db.session.commit()
            self.store_id = store.id

            user = User(name="Kasir", username="kasir_konkuren", role="CASHIER", store_id=self.store_id)
            db.session.add(user)
            db.session.commit()
            self.user_id = user.id

            member = Member(store_id=self.store_id, name="Pak Joko", discount_percent=0)
            db.session.add(member)
            db.session.commit()
            self.member_id = member.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _product(self, stock: int) -> int:
        with self.app.app_context():
            product = Product(store_id=self.store_id, code=f"P{stock}", name="Produk Terakhir", stock=stock)
            product.price_tiers.append(PriceTier(min_qty=1, price=10000))
            db.session.add(product)
            db.session.commit()
            return product.id

    def _run_threads(self, target, count: int) -> list:
        results = []
        lock = threading.Lock()

        def worker(index):
            with self.app.app_context():
                try:
                    outcome = target(index)
                    with lock:
                        results.append(outcome)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _sell_one(self, product_id: int):
        sale = sales_service.record_sale(
            store_id=self.store_id,
            cashier_id=self.user_id,
            attendant_id=self.user_id,
            items=[{"product_id": product_id, "quantity": 1}],
            payment=10000,
        )
        return sale.invoice_number

    def test_last_unit_sold_once(self):
        product_id = self._product(stock=1)

        results = self._run_threads(lambda _: self._sell_one(product_id), 2)

        sold = [r for r in results if isinstance(r, str)]
        refused = [r for r in results if isinstance(r, InsufficientStock)]
        self.assertEqual(len(sold), 1, results)
        self.assertEqual(len(refused), 1, results)

        with self.app.app_context():
            self.assertEqual(db.session.get(Product, product_id).stock, 0)
            self.assertEqual(db.session.query(Sale).count(), 1)

    def test_invoice_numbers_unique(self):
        product_id = self._product(stock=10)

        results = self._run_threads(lambda _: self._sell_one(product_id), 6)

        self.assertTrue(all(isinstance(r, str) for r in results), results)
        self.assertEqual(len(results), len(set(results)))
        with self.app.app_context():
            self.assertEqual(db.session.get(Product, product_id).stock, 4)

    def test_concurrent_payments_never_overpay(self):
        product_id = self._product(stock=5)
        with self.app.app_context():
            sale = sales_service.record_sale(
                store_id=self.store_id,
                cashier_id=self.user_id,
                attendant_id=self.user_id,
                member_id=self.member_id,
                items=[{"product_id": product_id, "quantity": 3}],
                payment=0,
                status="DEBT",
            )
            receivable_id = sale.receivable.id

        results = self._run_threads(
            lambda _: receivable_service.apply_payment(receivable_id, 20000).amount_paid,
            3,
        )

        applied = [r for r in results if isinstance(r, int)]
        self.assertEqual(len(applied), 1, results)
        with self.app.app_context():
            receivable = db.session.get(Receivable, receivable_id)
            self.assertEqual(receivable.amount_paid, 20000)
            self.assertEqual(receivable.status, "PARTIALLY_PAID")

    def test_blocked_unit_times_out_within_budget(self):
        product_id = self._product(stock=5)
        self.app.config["TRANSACTION_TIMEOUT_SECONDS"] = 1

        # Another process holds the write lock for the whole test
        blocker = sqlite3.connect(self.db_path, isolation_level=None)
        blocker.execute("BEGIN IMMEDIATE")
        try:
            with self.app.app_context():
                started = time.monotonic()
                with self.assertRaises(TransactionTimeout):
                    self._sell_one(product_id)
                elapsed = time.monotonic() - started
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        self.assertLess(elapsed, 2.0)
        with self.app.app_context():
            self.assertEqual(db.session.get(Product, product_id).stock, 5)
            self.assertEqual(db.session.query(Sale).count(), 0)

    def test_central_warehouse_created_once(self):
        results = self._run_threads(
            lambda _: run_atomic(lambda: provisioning_service.get_or_create_central_warehouse().id),
            5,
        )

        self.assertTrue(all(isinstance(r, int) for r in results), results)
        self.assertEqual(len(set(results)), 1)
        with self.app.app_context():
            self.assertEqual(db.session.query(Warehouse).count(), 1)

    def test_last_warehouse_units_distributed_once(self):
        with self.app.app_context():
            head_office = Store(name="Kantor Pusat", code="PUSAT", is_active=True)
            db.session.add(head_office)
            db.session.commit()
            product = Product(store_id=head_office.id, code="TLR", name="Telur", stock=0, purchase_price=2000)
            product.price_tiers.append(PriceTier(min_qty=1, price=2500))
            db.session.add(product)
            warehouse = provisioning_service.get_or_create_central_warehouse()
            db.session.commit()
            db.session.add(WarehouseProduct(warehouse_id=warehouse.id, product_id=product.id, quantity=3))
            db.session.commit()
            product_id, warehouse_id = product.id, warehouse.id

        def _distribute(_):
            batch = distribution_service.create_distribution(
                store_id=self.store_id,
                distribution_date="2025-03-01",
                items=[{"product_id": product_id, "quantity": 3}],
                distributed_by=self.user_id,
            )
            return batch.invoice_number

        results = self._run_threads(_distribute, 2)

        shipped = [r for r in results if isinstance(r, str)]
        refused = [r for r in results if isinstance(r, InsufficientStock)]
        self.assertEqual(len(shipped), 1, results)
        self.assertEqual(len(refused), 1, results)
        with self.app.app_context():
            row = db.session.query(WarehouseProduct).filter_by(warehouse_id=warehouse_id, product_id=product_id).one()
            self.assertEqual(row.quantity, 0)
            self.assertEqual(db.session.query(DistributionBatch).count(), 1)


if __name__ == "__main__":
    unittest.main()
