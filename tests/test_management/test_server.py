#!/usr/bin/python3
"""Unit tests for the in-memory management server."""
import unittest

from tomcat_exporter.management import (
    AttributeNotFoundError,
    CommunicationError,
    InMemoryManagementServer,
    InstanceNotFoundError,
    MalformedObjectNameError,
    ObjectName,
    ServerInfo,
    get_platform_server,
)


class Bean:
    """Object-style managed object."""

    maxThreads = 200

    def __init__(self):
        self.calls = 0

    def currentThreadCount(self):
        self.calls += 1
        return 10

    @property
    def broken(self):
        raise RuntimeError("backend down")


class TestInMemoryManagementServer(unittest.TestCase):

    def setUp(self):
        self.server = InMemoryManagementServer(ServerInfo("9.0.85", "built"))

    def test_register_and_query(self):
        name = self.server.register("Catalina:type=ThreadPool,name=a", {"maxThreads": 200})
        self.server.register("Catalina:type=ThreadPool,name=b", {"maxThreads": 100})
        self.server.register("Catalina:type=Manager,context=/,host=localhost", {})

        found = self.server.query_names(ObjectName.parse("Catalina:type=ThreadPool,name=*"))
        self.assertEqual(len(found), 2)
        self.assertIn(name, found)
        self.assertTrue(self.server.is_registered("Catalina:name=a,type=ThreadPool"))

    def test_register_rejects_patterns_and_duplicates(self):
        with self.assertRaises(MalformedObjectNameError):
            self.server.register("Catalina:type=ThreadPool,*", {})
        self.server.register("Catalina:type=ThreadPool,name=a", {})
        with self.assertRaises(ValueError):
            self.server.register("Catalina:type=ThreadPool,name=a", {})

    def test_unregister(self):
        self.server.register("Catalina:type=ThreadPool,name=a", {})
        self.server.unregister("Catalina:type=ThreadPool,name=a")
        self.assertFalse(self.server.is_registered("Catalina:type=ThreadPool,name=a"))
        with self.assertRaises(InstanceNotFoundError):
            self.server.unregister("Catalina:type=ThreadPool,name=a")

    def test_mapping_bean_attributes(self):
        name = self.server.register("Catalina:type=ThreadPool,name=a", {"maxThreads": 200, "live": lambda: 7})
        self.assertEqual(self.server.get_attribute(name, "maxThreads"), 200)
        self.assertEqual(self.server.get_attribute(name, "live"), 7)
        with self.assertRaises(AttributeNotFoundError):
            self.server.get_attribute(name, "missing")

    def test_object_bean_attributes(self):
        bean = Bean()
        name = self.server.register("Catalina:type=ThreadPool,name=a", bean)
        values = self.server.get_attributes(name, ["maxThreads", "currentThreadCount", "missing"])
        self.assertEqual(values, {"maxThreads": 200, "currentThreadCount": 10})
        self.assertEqual(bean.calls, 1)

    def test_failing_attribute_is_a_communication_error(self):
        name = self.server.register("Catalina:type=ThreadPool,name=a", Bean())
        with self.assertRaises(CommunicationError):
            self.server.get_attributes(name, ["broken"])

    def test_unknown_instance(self):
        with self.assertRaises(InstanceNotFoundError):
            self.server.get_attributes(ObjectName.parse("Catalina:type=ThreadPool,name=x"), ["maxThreads"])

    def test_server_info(self):
        self.assertEqual(self.server.server_info.number, "9.0.85")
        self.assertEqual(InMemoryManagementServer().server_info.number, "unknown")

    def test_platform_server_is_a_singleton(self):
        self.assertIs(get_platform_server(), get_platform_server())


if __name__ == "__main__":
    unittest.main()
