"""PROPPATCH request body parsing.

The ``propertyupdate`` document is consumed as a stream of start/end events
from :class:`xml.etree.ElementTree.XMLPullParser` and driven through a small
state machine::

    IDLE --<set>--> IN_SET --<prop>/<name>--> IN_PROP(name) --</name>--> IN_SET
    IDLE --<remove>--> IN_REMOVE --<prop>/<name>--> IN_PROP(name) --> IN_REMOVE
    IN_SET / IN_REMOVE --</set> or </remove>--> IDLE

Every property element closed in IN_PROP yields one :class:`PropertyUpdate`
in document order.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum

from bucketdav.errors import ClientInputError

_DAV = "{DAV:}"


class ParserState(Enum):
    IDLE = "idle"
    IN_SET = "in_set"
    IN_REMOVE = "in_remove"
    IN_PROP = "in_prop"


@dataclass(frozen=True)
class PropertyUpdate:
    """One instruction from a PROPPATCH body.

    Attributes:
        action: ``"set"`` or ``"remove"``.
        namespace: Namespace URI of the property element ("" if none).
        name: Local name of the property element.
        value: Text content for ``set``; None for ``remove``.
    """

    action: str
    namespace: str
    name: str
    value: str | None = None


def _split_tag(tag: str) -> tuple[str, str]:
    if tag.startswith("{"):
        namespace, _, local = tag[1:].partition("}")
        return namespace, local
    return "", tag


class _PropertyUpdateMachine:
    def __init__(self) -> None:
        self.state = ParserState.IDLE
        self.updates: list[PropertyUpdate] = []
        self._depth = 0
        self._prop_depth: int | None = None
        self._mode: ParserState | None = None
        self._current: ET.Element | None = None

    def start(self, elem: ET.Element) -> None:
        self._depth += 1
        if self._depth == 1:
            if elem.tag != _DAV + "propertyupdate":
                raise ClientInputError("Expected a DAV:propertyupdate document")
            return

        if self.state is ParserState.IDLE:
            if self._depth == 2 and elem.tag == _DAV + "set":
                self.state = ParserState.IN_SET
            elif self._depth == 2 and elem.tag == _DAV + "remove":
                self.state = ParserState.IN_REMOVE
        elif self.state in (ParserState.IN_SET, ParserState.IN_REMOVE):
            if self._depth == 3 and elem.tag == _DAV + "prop":
                self._prop_depth = self._depth
            elif self._prop_depth is not None and self._depth == self._prop_depth + 1:
                self._mode = self.state
                self._current = elem
                self.state = ParserState.IN_PROP

    def end(self, elem: ET.Element) -> None:
        self._depth -= 1
        if self.state is ParserState.IN_PROP:
            if elem is self._current:
                namespace, name = _split_tag(elem.tag)
                if self._mode is ParserState.IN_SET:
                    update = PropertyUpdate("set", namespace, name, "".join(elem.itertext()))
                else:
                    update = PropertyUpdate("remove", namespace, name)
                self.updates.append(update)
                self.state = self._mode
                self._current = None
        elif self.state in (ParserState.IN_SET, ParserState.IN_REMOVE):
            if elem.tag == _DAV + "prop" and self._depth + 1 == self._prop_depth:
                self._prop_depth = None
            elif self._depth == 1:
                self.state = ParserState.IDLE


def parse_propertyupdate(body: bytes) -> list[PropertyUpdate]:
    """Parse a PROPPATCH request body.

    Args:
        body: The raw request body.

    Returns:
        The set/remove instructions in document order.

    Raises:
        ClientInputError: If the body is not well-formed XML or its root is
            not ``DAV:propertyupdate``.
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    machine = _PropertyUpdateMachine()
    try:
        parser.feed(body)
        parser.close()
        for event, elem in parser.read_events():
            if event == "start":
                machine.start(elem)
            else:
                machine.end(elem)
    except ET.ParseError as exc:
        raise ClientInputError(f"Malformed XML: {exc}") from exc
    return machine.updates
