from typing import Any, Dict, List, TypedDict, Union


class JSONAPIResourceIdentifier(TypedDict):
    id: str
    type: str


class JSONAPIResourceObject(JSONAPIResourceIdentifier, total=False):
    attributes: Dict[str, Any]
    relationships: Dict[str, Any]
    links: Dict[str, Any]


JSONAPIData = Union[JSONAPIResourceObject, List[JSONAPIResourceObject], None]


class JSONAPIError(TypedDict, total=False):
    title: str
    detail: str


class JSONAPIDocument(TypedDict, total=False):
    data: JSONAPIData
    meta: Dict[str, Any]
    errors: List[JSONAPIError]
    included: List[JSONAPIResourceObject]
    jsonapi: Dict[str, str]
