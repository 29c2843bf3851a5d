#!/usr/bin/python3
"""Unit tests for metric family schemas and per-pass builders."""
import unittest

from tomcat_exporter.errors import ConfigurationError, ProgrammerError
from tomcat_exporter.monitoring.families import (
    FamilyRegistry,
    MetricFamilyBuilder,
    MetricKind,
    normalize_buckets,
    sanitize_label_value,
)


class TestFamilyRegistry(unittest.TestCase):

    def setUp(self):
        self.families = FamilyRegistry()

    def test_define_is_get_or_create(self):
        first = self.families.define("tomcat_threads_total", "Threads", MetricKind.GAUGE, ["name"])
        second = self.families.define("tomcat_threads_total", "Threads", MetricKind.GAUGE, ("name",))
        self.assertIs(first, second)
        self.assertIn("tomcat_threads_total", self.families)
        self.assertEqual(self.families.names(), ["tomcat_threads_total"])

    def test_define_rejects_schema_change(self):
        self.families.define("tomcat_threads_total", "Threads", MetricKind.GAUGE, ["name"])
        with self.assertRaises(ProgrammerError):
            self.families.define("tomcat_threads_total", "Threads", MetricKind.COUNTER, ["name"])
        with self.assertRaises(ProgrammerError):
            self.families.define("tomcat_threads_total", "Threads", MetricKind.GAUGE, ["pool"])

    def test_histogram_buckets_end_with_inf(self):
        definition = self.families.define("q_seconds", "Queries", MetricKind.HISTOGRAM, [], [1, 2.5])
        self.assertEqual(definition.buckets, (1.0, 2.5, float("inf")))

    def test_bad_buckets(self):
        with self.assertRaises(ConfigurationError):
            normalize_buckets([2, 1])
        with self.assertRaises(ConfigurationError):
            normalize_buckets([])


class TestMetricFamilyBuilder(unittest.TestCase):

    def setUp(self):
        self.builder = MetricFamilyBuilder(FamilyRegistry())

    def test_set_replaces_previous_value(self):
        family = self.builder.family("tomcat_threads_total", "Threads", label_names=["name"])
        family.set(["http-nio-8080"], 10)
        family.set(["http-nio-8080"], 12)
        self.assertEqual(family.samples(), {("http-nio-8080",): 12.0})

    def test_label_values_are_sanitized(self):
        self.assertEqual(sanitize_label_value('"jdbc/my\\pool"'), "jdbc/mypool")
        family = self.builder.family("tomcat_pool_connections_max", "Max", label_names=["pool"])
        family.set(['"jdbc/mypool"'], 20)
        self.assertEqual(list(family.samples()), [("jdbc/mypool",)])

    def test_programmer_errors(self):
        gauge = self.builder.family("g", "Gauge", label_names=["a", "b"])
        with self.assertRaises(ProgrammerError):
            gauge.set(["only-one"], 1)
        with self.assertRaises(ProgrammerError):
            gauge.set("ab", 1)
        with self.assertRaises(ProgrammerError):
            gauge.set(["a", "b"], "many")
        with self.assertRaises(ProgrammerError):
            gauge.observe(["a", "b"], 1)
        histogram = self.builder.family("h", "Histogram", MetricKind.HISTOGRAM, buckets=[1])
        with self.assertRaises(ProgrammerError):
            histogram.set([], 1)

    def test_empty_families_are_not_built(self):
        self.builder.family("tomcat_threads_total", "Threads", label_names=["name"])
        self.assertEqual(self.builder.build(), [])

    def test_scope_drops_samples_on_failure(self):
        with self.builder.scope() as scoped:
            scoped.family("kept", "Kept").set([], 1)
        with self.assertRaises(RuntimeError):
            with self.builder.scope() as scoped:
                scoped.family("dropped", "Dropped").set([], 1)
                raise RuntimeError("group failed")
        self.assertEqual([f.name for f in self.builder.families()], ["kept"])

    def test_counter_metric(self):
        family = self.builder.family("tomcat_pool_connections_borrowed_total", "Borrowed",
                                     MetricKind.COUNTER, ["pool"])
        family.set(["jdbc/mypool"], 3012)
        metric = family.to_metric()
        self.assertEqual(metric.type, "counter")
        self.assertEqual(metric.name, "tomcat_pool_connections_borrowed")
        self.assertEqual(metric.samples[0].name, "tomcat_pool_connections_borrowed_total")
        self.assertEqual(metric.samples[0].value, 3012.0)

    def test_histogram_metric_is_cumulative(self):
        family = self.builder.family("q_seconds", "Queries", MetricKind.HISTOGRAM, ["status"], [0.1, 1])
        for value in (0.05, 0.5, 0.7, 5):
            family.observe(["success"], value)
        metric = family.to_metric()
        buckets = {s.labels["le"]: s.value for s in metric.samples if s.name == "q_seconds_bucket"}
        self.assertEqual(buckets, {"0.1": 1, "1.0": 3, "+Inf": 4})
        count = [s.value for s in metric.samples if s.name == "q_seconds_count"]
        self.assertEqual(count, [4])

    def test_observation_on_bucket_boundary(self):
        family = self.builder.family("q_seconds", "Queries", MetricKind.HISTOGRAM, [], [1])
        family.observe([], 1.0)
        buckets = {s.labels["le"]: s.value for s in family.to_metric().samples if s.name == "q_seconds_bucket"}
        self.assertEqual(buckets["1.0"], 1)


if __name__ == "__main__":
    unittest.main()
