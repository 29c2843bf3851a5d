#!/usr/bin/python3
"""Unit tests for object name parsing and pattern matching."""
import unittest

from tomcat_exporter.errors import ConfigurationError
from tomcat_exporter.management import MalformedObjectNameError, ObjectName


class TestObjectNameParsing(unittest.TestCase):

    def test_parse_keeps_domain_and_properties(self):
        name = ObjectName.parse("Catalina:type=Manager,context=/foo,host=localhost")
        self.assertEqual(name.domain, "Catalina")
        self.assertEqual(name.get("type"), "Manager")
        self.assertEqual(name.get("context"), "/foo")
        self.assertEqual(name.get("host"), "localhost")
        self.assertIsNone(name.get("name"))
        self.assertFalse(name.is_pattern)

    def test_quoted_values_keep_their_quotes(self):
        name = ObjectName.parse('tomcat.jdbc:type=ConnectionPool,name="jdbc/my,pool"')
        self.assertEqual(name.get("name"), '"jdbc/my,pool"')

    def test_equality_ignores_property_order(self):
        a = ObjectName.parse("Catalina:type=Manager,context=/foo,host=localhost")
        b = ObjectName.parse("Catalina:host=localhost,type=Manager,context=/foo")
        self.assertEqual(a, b)
        self.assertEqual(hash(a), hash(b))
        self.assertEqual(str(b), "Catalina:host=localhost,type=Manager,context=/foo")

    def test_property_list_pattern(self):
        pattern = ObjectName.parse("tomcat.jdbc:type=ConnectionPool,*")
        self.assertTrue(pattern.is_pattern)
        self.assertTrue(pattern.property_list_pattern)
        self.assertEqual(str(pattern), "tomcat.jdbc:type=ConnectionPool,*")

    def test_malformed_names(self):
        for text in ("Catalina", ":type=Manager", "Catalina:", "Catalina:type",
                     "Catalina:type=a,type=b", "Catalina:type=", "Catalina:type=a,*,*",
                     'Catalina:name="unterminated', "Catalina:=value"):
            with self.subTest(text=text):
                with self.assertRaises(MalformedObjectNameError):
                    ObjectName.parse(text)

    def test_malformed_name_is_a_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            ObjectName.parse("not a name")

    def test_quote_escapes_special_characters(self):
        self.assertEqual(ObjectName.quote("jdbc/mypool"), '"jdbc/mypool"')
        self.assertEqual(ObjectName.quote('a"b*'), '"a\\"b\\*"')


class TestObjectNameMatching(unittest.TestCase):

    def test_value_wildcards(self):
        pattern = ObjectName.parse("Catalina:type=Manager,context=*,host=*")
        self.assertTrue(pattern.matches(ObjectName.parse("Catalina:type=Manager,context=/foo,host=localhost")))
        self.assertFalse(pattern.matches(ObjectName.parse("Tomcat:type=Manager,context=/foo,host=localhost")))
        self.assertFalse(pattern.matches(ObjectName.parse("Catalina:type=ThreadPool,name=x")))

    def test_exact_property_set_without_list_wildcard(self):
        pattern = ObjectName.parse("Catalina:type=Manager,context=*,host=*")
        extra = ObjectName.parse("Catalina:type=Manager,context=/foo,host=localhost,extra=1")
        self.assertFalse(pattern.matches(extra))

    def test_property_list_wildcard_allows_extra_properties(self):
        pattern = ObjectName.parse("tomcat.jdbc:type=ConnectionPool,class=org.apache.tomcat.jdbc.pool.DataSource,*")
        pool = ObjectName.parse('tomcat.jdbc:type=ConnectionPool,class=org.apache.tomcat.jdbc.pool.DataSource,'
                                'context=/foo,name="jdbc/mypool"')
        other = ObjectName.parse('tomcat.jdbc:type=ConnectionPool,class=other.DataSource,name="x"')
        self.assertTrue(pattern.matches(pool))
        self.assertFalse(pattern.matches(other))

    def test_domain_wildcard(self):
        pattern = ObjectName.parse("tomcat.*:type=ConnectionPool,*")
        self.assertTrue(pattern.matches(ObjectName.parse("tomcat.jdbc:type=ConnectionPool,name=a")))
        self.assertFalse(pattern.matches(ObjectName.parse("tomcatXjdbc:type=Other,name=a")))


if __name__ == "__main__":
    unittest.main()
