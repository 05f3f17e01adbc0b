"""Parser for OData ``$metadata`` (EDMX) documents, V2 and V4."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.errors import ODataError


@dataclass
class EntityProperty:
    name: str
    type: str
    nullable: bool = True
    max_length: Optional[int] = None


@dataclass
class EntityType:
    name: str
    namespace: str = ""
    keys: List[str] = field(default_factory=list)
    properties: List[EntityProperty] = field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name


@dataclass
class ServiceMetadata:
    """Entity sets and entity types declared by a service."""
    version: str = ""
    entity_sets: Dict[str, str] = field(default_factory=dict)  # set name -> qualified type
    entity_types: Dict[str, EntityType] = field(default_factory=dict)  # qualified name -> type

    def get_entity_type(self, entity_set: str) -> Optional[EntityType]:
        type_name = self.entity_sets.get(entity_set)
        return self.entity_types.get(type_name) if type_name else None

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "entitySets": dict(self.entity_sets),
            "entityTypes": {
                name: {
                    "keys": t.keys,
                    "properties": [
                        {"name": p.name, "type": p.type, "nullable": p.nullable, "maxLength": p.max_length}
                        for p in t.properties
                    ],
                }
                for name, t in self.entity_types.items()
            },
        }


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def parse_metadata(xml_text: str) -> ServiceMetadata:
    """Parse an EDMX document.

    Raises:
        ODataError: document is not well-formed XML
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ODataError(f"Invalid $metadata document: {e}", cause=e)

    metadata = ServiceMetadata(version=root.get("Version", ""))

    for element in root.iter():
        if _local(element.tag) != "Schema":
            continue
        namespace = element.get("Namespace", "")

        for type_el in _children(element, "EntityType"):
            entity_type = EntityType(name=type_el.get("Name", ""), namespace=namespace)
            for key_el in _children(type_el, "Key"):
                entity_type.keys.extend(ref.get("Name", "") for ref in _children(key_el, "PropertyRef"))
            for prop_el in _children(type_el, "Property"):
                max_length = prop_el.get("MaxLength")
                entity_type.properties.append(
                    EntityProperty(
                        name=prop_el.get("Name", ""),
                        type=prop_el.get("Type", ""),
                        nullable=prop_el.get("Nullable", "true").lower() != "false",
                        max_length=int(max_length) if max_length and max_length.isdigit() else None,
                    )
                )
            metadata.entity_types[entity_type.qualified_name] = entity_type

        for container in _children(element, "EntityContainer"):
            for set_el in _children(container, "EntitySet"):
                metadata.entity_sets[set_el.get("Name", "")] = set_el.get("EntityType", "")

    return metadata
