#!/usr/bin/python3
"""Unit tests for exposing a SQLAlchemy pool as a managed object."""
import unittest

from sqlalchemy import create_engine, text
from sqlalchemy.pool import NullPool, QueuePool

from tests.test_helpers import new_registries, new_server
from tomcat_exporter.management import ObjectName
from tomcat_exporter.management.sqlalchemy_pool import register_engine_pool
from tomcat_exporter.monitoring.pool_metrics import PoolMetricsCollector


class TestSQLAlchemyPoolBean(unittest.TestCase):

    def setUp(self):
        self.server = new_server()
        self.engine = create_engine("sqlite://", poolclass=QueuePool, pool_size=5, max_overflow=10)

    def tearDown(self):
        self.engine.dispose()

    def test_register_engine_pool(self):
        name = register_engine_pool(self.engine, "orders", server=self.server)
        self.assertEqual(name, ObjectName.parse('sqlalchemy:type=Pool,name="orders"'))
        self.assertTrue(self.server.is_registered(name))

    def test_pool_attributes_follow_checkouts(self):
        name = register_engine_pool(self.engine, "orders", server=self.server)

        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            values = self.server.get_attributes(name, ["MaxSize", "CheckedOut", "BorrowedCount"])
            self.assertEqual(values["MaxSize"], 15)
            self.assertEqual(values["CheckedOut"], 1)
            self.assertGreaterEqual(values["BorrowedCount"], 1)

        values = self.server.get_attributes(
            name, ["CheckedOut", "CheckedIn", "Size", "ReturnedCount", "CreatedCount"])
        self.assertEqual(values["CheckedOut"], 0)
        self.assertEqual(values["CheckedIn"], 1)
        self.assertEqual(values["Size"], 1)
        self.assertGreaterEqual(values["ReturnedCount"], 1)
        self.assertEqual(values["CreatedCount"], 1)

    def test_exported_by_pool_collector(self):
        register_engine_pool(self.engine, "orders", server=self.server)
        registry, families = new_registries()
        registry.register(PoolMetricsCollector(self.server, families=families, strict=True))
        with self.engine.connect():
            self.assertEqual(registry.get_sample_value("tomcat_pool_connections_max", {"pool": "orders", "context": ""}), 15)
            self.assertEqual(
                registry.get_sample_value("tomcat_pool_connections_active_total", {"pool": "orders", "context": ""}), 1)

    def test_unlimited_overflow_has_no_max_size(self):
        engine = create_engine("sqlite://", poolclass=QueuePool, pool_size=5, max_overflow=-1)
        try:
            name = register_engine_pool(engine, "unbounded", server=self.server)
            values = self.server.get_attributes(name, ["MaxSize", "CheckedOut"])
            self.assertNotIn("MaxSize", values)
            self.assertEqual(values["CheckedOut"], 0)
        finally:
            engine.dispose()

    def test_size_attributes_absent_without_a_queue(self):
        engine = create_engine("sqlite://", poolclass=NullPool)
        try:
            name = register_engine_pool(engine, "nullpool", server=self.server)
            values = self.server.get_attributes(name, ["MaxSize", "BorrowedCount"])
            self.assertNotIn("MaxSize", values)
            self.assertEqual(values["BorrowedCount"], 0)
        finally:
            engine.dispose()


if __name__ == "__main__":
    unittest.main()
