# JSON:API response formatting
# - resource objects with attributes and relationships (https://jsonapi.org/format/#document-resource-objects)
# - compound documents (https://jsonapi.org/format/#document-compound-documents)
# - sparse fieldsets (https://jsonapi.org/format/#fetching-sparse-fieldsets)
#
from typing import Any, Dict, Iterable, List, Mapping, Optional
from .jsonapi_types import JSONAPIDocument, JSONAPIResourceObject
from .manager import Entity
from .view import ViewModel


def parse_fields(fields: Any) -> Dict[str, List[str]]:
    """
    :param fields: "fields" request parameter, e.g. {"order": "order.price,order.status"}
    :return: allowed attribute names by resource type
    """
    if not isinstance(fields, Mapping):
        return {}
    result = {}
    for resource_type, names in fields.items():
        if isinstance(names, str):
            names = names.split(",")
        result[resource_type] = [name.strip() for name in names if name.strip()]
    return result


def get_relationships(item: Entity, view: ViewModel) -> Dict[str, Any]:
    """
    Relationships of a primary item, from the list items and the child items of the view
    """
    result: Dict[str, Any] = {}
    item_id = str(item.id)

    for list_item in view.list_items:
        if str(list_item.parent_id) != item_id:
            continue
        data = result.setdefault(list_item.domain, {"data": []})["data"]
        data.append({"id": str(list_item.ref_id), "type": list_item.domain, "attributes": list_item.to_dict()})

    for child in view.child_items:
        if str(child.parent_id) != item_id:
            continue
        data = result.setdefault(item.resource_type, {"data": []})["data"]
        data.append({"id": str(child.id), "type": child.resource_type})

    return result


def jsonapi_encode(
    item: Entity, fields: Mapping[str, List[str]], relationships: Optional[Dict[str, Any]] = None, base_url: str = ""
) -> JSONAPIResourceObject:
    attributes = item.to_dict()
    allowed = fields.get(item.resource_type)
    if allowed is not None:
        attributes = {name: value for name, value in attributes.items() if name in allowed}

    result: JSONAPIResourceObject = {"id": str(item.id), "type": item.resource_type, "attributes": attributes}
    if base_url:
        result["links"] = {"self": f"{base_url}/{item.resource_type}/{item.id}"}
    if relationships:
        result["relationships"] = relationships
    return result


def _encode_data(data: Any, view: ViewModel, fields: Mapping[str, List[str]], base_url: str) -> Any:
    if isinstance(data, Entity):
        return jsonapi_encode(data, fields, get_relationships(data, view), base_url)
    return [jsonapi_encode(item, fields, get_relationships(item, view), base_url) for item in data]


def jsonapi_format_response(view: ViewModel, base_url: str = "") -> JSONAPIDocument:
    """
    Create a response dict according to the json:api schema spec
    :param view: view model filled by the resource handler
    :param base_url: url of the API, used for the links
    :return: jsonapi formatted dictionary
    """
    result: JSONAPIDocument = {"meta": {"total": view.total}, "jsonapi": {"version": "1.0"}}

    if view.errors:
        # error documents don't contain data
        result["errors"] = view.errors
        return result

    if view.resources is not None:
        # OPTIONS
        result["meta"]["resources"] = {name: f"{base_url}/{name}" for name in view.resources}
        result["meta"]["attributes"] = {attr.code: attr.to_dict() for attr in view.attributes or []}
        return result

    fields = parse_fields(view.params.get("fields"))

    if view.data is not None:
        result["data"] = _encode_data(view.data, view, fields, base_url)

    if view.included:
        result["included"] = included_resources(view.included, fields, base_url)

    return result


def included_resources(items: Iterable[Entity], fields: Mapping[str, List[str]], base_url: str = "") -> List[JSONAPIResourceObject]:
    return [jsonapi_encode(item, fields, base_url=base_url) for item in items]
