"""
Serialized model fragments.

Two dialects are accepted when adding a model from text:

Native (JSON):
    {"$type": "Folder", "Name": "Paddock", "Children": [
        {"$type": "Fertiliser", "Name": "Urea", "amount": 40.0}
    ]}

Legacy (flat XML from the older file format):
    <folder name="Paddock">
        <fertiliser><name>Urea</name><amount>40</amount></fertiliser>
    </folder>

Detection never uses exceptions to choose between dialects:
try_parse_native() returns None for text that is not a JSON document and
only then is the legacy importer consulted. A JSON document that fails
validation is a hard error and is not retried as XML.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from canopy.errors import InvalidFormatError
from canopy.node import ModelNode, attach_child, lookup_type

logger = logging.getLogger(__name__)

#
# Schemata
#


class NodeDocument(BaseModel):
    """One model in the native format. Unknown keys carry parameters."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type_name: str = Field(alias="$type", description="Registered model type name")
    name: str | None = Field(default=None, alias="Name", description="Model name")
    read_only: bool = Field(default=False, alias="ReadOnly", description="Reject edits")
    children: list[NodeDocument] = Field(
        default_factory=list, alias="Children", description="Child models in order"
    )


NodeDocument.model_rebuild()


_TRUE_WORDS = {"true", "yes", "1"}

# Validators for native parameter values, by the type of the class default
_ADAPTERS: dict[type, TypeAdapter] = {t: TypeAdapter(t) for t in (bool, int, float, str)}


class ExternalFormatImporter:
    """Builds detached model subtrees from serialized text."""

    def parse(self, text: str) -> ModelNode:
        """
        Build a subtree from either dialect.

        Raises:
            InvalidFormatError: If the text matches neither dialect
        """
        node = self.try_parse_native(text)
        if node is None:
            node = self.import_legacy(text)
        return node

    def try_parse_native(self, text: str) -> ModelNode | None:
        """
        Build a subtree from native JSON.

        Returns:
            The subtree root, or None if the text is not a JSON document

        Raises:
            InvalidFormatError: If the text is JSON but not a valid model
                document (unknown type, bad field values)
        """
        stripped = text.strip()
        if not stripped.startswith("{"):
            return None
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as err:
            raise InvalidFormatError(f"Malformed model document: {err}") from err
        try:
            document = NodeDocument.model_validate(data)
        except ValidationError as err:
            raise InvalidFormatError(f"Invalid model document: {err}") from err
        return self._build(document)

    def import_legacy(self, text: str) -> ModelNode:
        """
        Build a subtree from a legacy XML fragment.

        The fragment is wrapped in a <simulation> element and its first
        component converted; anything after it is ignored.

        Raises:
            InvalidFormatError: If the fragment is not well-formed XML,
                holds no component, or names an unknown component type
        """
        try:
            wrapper = ET.fromstring(f"<simulation>{text}</simulation>")
        except ET.ParseError as err:
            raise InvalidFormatError(f"Not a recognised model fragment: {err}") from err

        components = list(wrapper)
        if not components:
            raise InvalidFormatError("Cannot add model. Invalid model being added.")
        if len(components) > 1:
            logger.warning(
                "Legacy fragment holds %d components; only <%s> is imported",
                len(components),
                components[0].tag,
            )
        return self._convert(components[0])

    def dump_native(self, node: ModelNode, indent: int | None = 2) -> str:
        """Serialize a subtree to the native format."""
        return to_document(node).model_dump_json(by_alias=True, indent=indent)

    def _build(self, document: NodeDocument) -> ModelNode:
        cls = lookup_type(document.type_name)
        if cls is None:
            raise InvalidFormatError(f"Unknown model type '{document.type_name}'")

        node = _instantiate(cls, document.name)
        allowed = cls.parameter_names()
        for key, value in (document.model_extra or {}).items():
            if key in allowed:
                setattr(node, key, _validate(cls, key, value))
            else:
                logger.warning("Ignoring unknown property '%s' on %s", key, cls.__name__)

        for child in document.children:
            attach_child(node, self._build(child))
        node.read_only = document.read_only
        return node

    def _convert(self, element: ET.Element) -> ModelNode:
        cls = lookup_type(element.tag)
        if cls is None:
            raise InvalidFormatError(f"Unknown component <{element.tag}>")

        name = element.get("name") or (element.findtext("name") or "").strip() or None
        node = _instantiate(cls, name)
        parameters = {p.lower(): p for p in cls.parameter_names()}

        for sub in element:
            tag = sub.tag.lower()
            if tag == "name":
                continue
            if len(sub) == 0 and tag in parameters:
                attr = parameters[tag]
                setattr(node, attr, _coerce(cls, attr, sub.text or ""))
            elif lookup_type(sub.tag) is not None:
                attach_child(node, self._convert(sub))
            elif len(sub) == 0:
                logger.warning("Ignoring unknown property <%s> on %s", sub.tag, cls.__name__)
            else:
                raise InvalidFormatError(f"Unknown component <{sub.tag}>")

        node.read_only = (element.get("readonly") or "").lower() in _TRUE_WORDS
        return node


def to_document(node: ModelNode) -> NodeDocument:
    """Native document for a subtree."""
    data: dict[str, Any] = {
        "$type": type(node).__name__,
        "Name": node.name,
        "ReadOnly": node.read_only,
        "Children": [to_document(child) for child in node.children],
    }
    for parameter in node.parameter_names():
        data[parameter] = getattr(node, parameter)
    return NodeDocument.model_validate(data)


def _coerce(cls: type[ModelNode], attr: str, text: str) -> Any:
    """Convert XML text using the type of the class-level default."""
    default = getattr(cls, attr, None)
    value = text.strip()
    try:
        if isinstance(default, bool):
            return value.lower() in _TRUE_WORDS
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except ValueError as err:
        raise InvalidFormatError(
            f"Bad value '{value}' for {cls.__name__}.{attr}"
        ) from err
    return value


def _validate(cls: type[ModelNode], attr: str, value: Any) -> Any:
    """Check a native value against the type of the class-level default."""
    adapter = _ADAPTERS.get(type(getattr(cls, attr, None)))
    if adapter is None:
        return value
    try:
        return adapter.validate_python(value)
    except ValidationError as err:
        raise InvalidFormatError(
            f"Bad value {value!r} for {cls.__name__}.{attr}"
        ) from err


def _instantiate(cls: type[ModelNode], name: str | None) -> ModelNode:
    try:
        return cls(name=name)
    except TypeError as err:
        raise InvalidFormatError(f"Cannot create {cls.__name__} from a fragment: {err}") from err
