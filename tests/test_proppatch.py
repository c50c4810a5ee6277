"""Tests for the PROPPATCH body parser."""

import pytest

from bucketdav.errors import ClientInputError
from bucketdav.proppatch import PropertyUpdate, parse_propertyupdate


class TestParsePropertyUpdate:
    def test_set_and_remove_in_document_order(self):
        body = b"""<?xml version="1.0"?>
<D:propertyupdate xmlns:D="DAV:" xmlns:Z="urn:example">
  <D:set>
    <D:prop><Z:author>Ada</Z:author><Z:tag>x</Z:tag></D:prop>
  </D:set>
  <D:remove>
    <D:prop><Z:old/></D:prop>
  </D:remove>
  <D:set>
    <D:prop><D:displayname>Doc</D:displayname></D:prop>
  </D:set>
</D:propertyupdate>"""
        assert parse_propertyupdate(body) == [
            PropertyUpdate("set", "urn:example", "author", "Ada"),
            PropertyUpdate("set", "urn:example", "tag", "x"),
            PropertyUpdate("remove", "urn:example", "old"),
            PropertyUpdate("set", "DAV:", "displayname", "Doc"),
        ]

    def test_unnamespaced_property(self):
        body = (
            b'<propertyupdate xmlns="DAV:"><set><prop>'
            b'<color xmlns="">red</color>'
            b"</prop></set></propertyupdate>"
        )
        assert parse_propertyupdate(body) == [PropertyUpdate("set", "", "color", "red")]

    def test_nested_markup_value_is_text(self):
        body = (
            b'<D:propertyupdate xmlns:D="DAV:"><D:set><D:prop>'
            b"<note>a<b>b</b>c</note>"
            b"</D:prop></D:set></D:propertyupdate>"
        )
        assert parse_propertyupdate(body) == [PropertyUpdate("set", "", "note", "abc")]

    def test_empty_set_value(self):
        body = (
            b'<D:propertyupdate xmlns:D="DAV:">'
            b"<D:set><D:prop><x/></D:prop></D:set></D:propertyupdate>"
        )
        assert parse_propertyupdate(body) == [PropertyUpdate("set", "", "x", "")]

    def test_no_instructions(self):
        assert parse_propertyupdate(b'<D:propertyupdate xmlns:D="DAV:"/>') == []

    def test_elements_outside_set_are_ignored(self):
        body = (
            b'<D:propertyupdate xmlns:D="DAV:"><D:prop><x>1</x></D:prop>'
            b"<other/></D:propertyupdate>"
        )
        assert parse_propertyupdate(body) == []

    @pytest.mark.parametrize("body", [b"", b"<not-closed>", b"plain text"])
    def test_malformed(self, body):
        with pytest.raises(ClientInputError):
            parse_propertyupdate(body)

    def test_wrong_root(self):
        with pytest.raises(ClientInputError, match="propertyupdate"):
            parse_propertyupdate(b'<D:propfind xmlns:D="DAV:"/>')

    def test_root_without_dav_namespace(self):
        with pytest.raises(ClientInputError):
            parse_propertyupdate(b"<propertyupdate/>")
