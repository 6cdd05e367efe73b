# Per request output of the resource handler, rendered by jsonapi.jsonapi_format_response
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from .manager import AttributeDescriptor, Entity, RelationshipRecord


@dataclass
class ViewModel:
    data: Union[Entity, List[Entity], None] = None
    included: List[Entity] = field(default_factory=list)
    child_items: List[Entity] = field(default_factory=list)
    list_items: List[RelationshipRecord] = field(default_factory=list)
    total: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    # OPTIONS
    resources: Optional[List[str]] = None
    attributes: Optional[List[AttributeDescriptor]] = None
    # query parameters of the request, used for sparse fieldsets
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HandlerResult:
    status: int
    headers: Dict[str, str]
    view: ViewModel
