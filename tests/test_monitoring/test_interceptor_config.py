#!/usr/bin/python3
"""Unit tests for the query interceptor property bag."""
import unittest

from tomcat_exporter.errors import ConfigurationError
from tomcat_exporter.monitoring.interceptor_config import (
    DEFAULT_BUCKETS,
    DEFAULT_SLOW_QUERY_BUCKETS,
    InterceptorSettings,
    load_settings,
    parse_properties,
)


class TestInterceptorSettings(unittest.TestCase):

    def test_defaults(self):
        settings = load_settings()
        self.assertEqual(settings, InterceptorSettings())
        self.assertFalse(settings.log_failed)
        self.assertFalse(settings.log_slow)
        self.assertEqual(settings.threshold, 1000)
        self.assertEqual(settings.buckets, DEFAULT_BUCKETS)
        self.assertEqual(settings.slow_query_buckets, DEFAULT_SLOW_QUERY_BUCKETS)

    def test_load_from_string(self):
        settings = load_settings("logFailed=true,logSlow=true,threshold=250,"
                                 "buckets=.01|.1|1,slowQueryBuckets=1|10")
        self.assertTrue(settings.log_failed)
        self.assertTrue(settings.log_slow)
        self.assertEqual(settings.threshold, 250)
        self.assertEqual(settings.buckets, (.01, .1, 1.0))
        self.assertEqual(settings.slow_query_buckets, (1.0, 10.0))

    def test_unknown_keys_are_ignored(self):
        settings = load_settings({"logSlow": "true", "trap": "true"})
        self.assertTrue(settings.log_slow)

    def test_invalid_values(self):
        for properties in ("threshold=-1", "threshold=abc", "logFailed=maybe",
                           "buckets=1|0.5", "buckets=a|b", "slowQueryBuckets="):
            with self.subTest(properties=properties):
                with self.assertRaises(ConfigurationError):
                    load_settings(properties)

    def test_parse_properties(self):
        self.assertEqual(parse_properties(" logSlow = true , buckets=1|2 ,"),
                         {"logSlow": "true", "buckets": "1|2"})
        with self.assertRaises(ConfigurationError):
            parse_properties("logSlow")


if __name__ == "__main__":
    unittest.main()
