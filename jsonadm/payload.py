"""
JSON:API request payload parsing

{"data": {...}} is a single entry request, {"data": [{...}, ...]} a bulk request
(http://springbot.github.io/json-api/extensions/bulk/).
Each element may contain "id", "type", "attributes" and "relationships":

{
    "data": {
        "type": "product",
        "attributes": {"product.code": "abc", "product.type": "default"},
        "relationships": {
            "text": {"data": [{"id": "12", "attributes": {"product.lists.type": "default"}}]}
        }
    }
}
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from .errors import InvalidBody


@dataclass
class RequestEntry:
    """
    Decoded data element of a write request,
    relationship references are RequestEntry instances too (id + attributes of the list item)
    """

    id: Any = None
    type: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    relationships: Dict[str, List["RequestEntry"]] = field(default_factory=dict)


@dataclass
class ParsedRequest:
    document: Dict[str, Any]
    bulk: bool
    entries: List[RequestEntry]

    @property
    def entry(self) -> RequestEntry:
        """
        The entry of a single entry request
        """
        return self.entries[0]

    def client_ids(self) -> List[Any]:
        return [entry.id for entry in self.entries if entry.id is not None]


def _parse_entry(data: Any) -> RequestEntry:
    if not isinstance(data, dict):
        raise InvalidBody(f"Invalid data object: {data}")

    attributes = data.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise InvalidBody(f"Invalid attributes: {attributes}")

    relationships = data.get("relationships") or {}
    if not isinstance(relationships, dict):
        raise InvalidBody(f"Invalid relationships: {relationships}")

    entry = RequestEntry(id=data.get("id"), type=data.get("type"), attributes=dict(attributes))
    for domain, relationship in relationships.items():
        if not isinstance(relationship, dict):
            raise InvalidBody(f'Invalid relationship "{domain}"')
        rel_data = relationship.get("data")
        if rel_data is None:
            continue
        if isinstance(rel_data, dict):
            # to-one relationship
            rel_data = [rel_data]
        if not isinstance(rel_data, list):
            raise InvalidBody(f'Invalid data in relationship "{domain}"')
        entry.relationships[domain] = [_parse_entry(item) for item in rel_data]

    return entry


def decode(raw_body: Union[bytes, str, None]) -> Dict[str, Any]:
    """
    :return: the decoded JSON:API document
    :raises InvalidBody: for anything but a JSON object with a "data" member
    """
    if isinstance(raw_body, bytes):
        try:
            raw_body = raw_body.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidBody()
    if not raw_body:
        raise InvalidBody()
    try:
        document = json.loads(raw_body)
    except ValueError:
        raise InvalidBody()
    if not isinstance(document, dict) or document.get("data") is None:
        raise InvalidBody()
    return document


def parse(raw_body: Union[bytes, str, None]) -> ParsedRequest:
    document = decode(raw_body)
    data = document["data"]

    if isinstance(data, list):
        return ParsedRequest(document, True, [_parse_entry(item) for item in data])
    return ParsedRequest(document, False, [_parse_entry(data)])


def extract_ids(parsed: ParsedRequest) -> List[Any]:
    """
    :return: ids of the data elements, elements without id are skipped
    """
    return parsed.client_ids()
