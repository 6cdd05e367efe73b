"""
manager.py: entities and the entity manager interface

The handler doesn't know how entities are stored, it talks to an EntityManagerPort
implementation that is looked up by resource type in the ManagerRegistry.
db.py contains an SQLAlchemy implementation.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import jsonadm
from .criteria import SearchCriteria
from .errors import DomainError, DomainNotFound


def attribute_prefix(resource_type: str) -> str:
    """
    :param resource_type: e.g. "order/product"
    :return: prefix of the attribute names, e.g. "order.product"
    """
    return resource_type.replace("/", ".")


class Entity:
    """
    An item identified by its id, with a resource type and a flat attribute map.
    Attribute names are qualified by the resource type, e.g. "product.code".
    """

    def __init__(self, resource_type: str, attributes: Optional[Mapping[str, Any]] = None, id: Any = None, parent_id: Any = None) -> None:
        self._attributes: Dict[str, Any] = {}
        self.resource_type = resource_type
        self.id = id
        # parent in the tree for resources with parent/child relationships
        self.parent_id = parent_id
        if attributes:
            self.from_dict(attributes)

    @property
    def prefix(self) -> str:
        return attribute_prefix(self.resource_type)

    @property
    def key(self) -> Tuple[str, str]:
        """
        (resource type, id) tuple identifying the entity across domains
        """
        return self.resource_type, str(self.id)

    def get(self, name: str, default: Any = None) -> Any:
        if name == f"{self.prefix}.id":
            return self.id
        return self._attributes.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._attributes[name] = value

    def from_dict(self, attributes: Mapping[str, Any]) -> "Entity":
        """
        Merge the attributes into the entity, the id is never changed this way
        """
        id_key = f"{self.prefix}.id"
        for name, value in attributes.items():
            if name != id_key:
                self._attributes[name] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        result = {f"{self.prefix}.id": self.id}
        result.update(self._attributes)
        return result

    @property
    def attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return self.key == other.key and self._attributes == other._attributes

    __hash__ = None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.resource_type} {self.id}>"


class RelationshipRecord(Entity):
    """
    List item: association of a parent entity with an entity of another domain
    The fields are stored in the attribute map: "<prefix>.parentid", "<prefix>.domain", "<prefix>.refid"
    """

    @property
    def parent_id(self) -> Any:
        return self._attributes.get(f"{self.prefix}.parentid")

    @parent_id.setter
    def parent_id(self, value: Any) -> None:
        if value is not None:
            self._attributes[f"{self.prefix}.parentid"] = value

    @property
    def domain(self) -> Optional[str]:
        return self._attributes.get(f"{self.prefix}.domain")

    @domain.setter
    def domain(self, value: str) -> None:
        self._attributes[f"{self.prefix}.domain"] = value

    @property
    def ref_id(self) -> Any:
        return self._attributes.get(f"{self.prefix}.refid")

    @ref_id.setter
    def ref_id(self, value: Any) -> None:
        self._attributes[f"{self.prefix}.refid"] = value


@dataclass(frozen=True)
class AttributeDescriptor:
    """
    Searchable attribute of a resource, returned by OPTIONS requests
    """

    code: str
    type: str = "string"
    label: str = ""
    required: bool = False
    default: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "type": self.type, "label": self.label or self.code, "required": self.required, "default": self.default}


class EntityManagerPort(ABC):
    """
    Interface of the managers used by the resource handler,
    one implementation per resource type
    """

    @abstractmethod
    def create_search_criteria(self) -> SearchCriteria:
        """
        :return: criteria, possibly including a base condition the client can't override
        """

    @abstractmethod
    def search(self, criteria: SearchCriteria, ref_domains: Sequence[str] = ()) -> Tuple[List[Entity], int]:
        """
        :return: the entities in the criteria slice and the total number of matching entities
        """

    @abstractmethod
    def search_by_ids(self, ids: Sequence[Any]) -> List[Entity]:
        ...

    def search_children(self, ids: Sequence[Any]) -> List[Entity]:
        """
        Tree resources return the child entities of the given parents (with parent_id set)
        """
        return []

    @abstractmethod
    def get_item(self, id: Any) -> Entity:
        """
        :raises NotFoundError: if the id doesn't exist
        """

    @abstractmethod
    def create_item(self) -> Entity:
        ...

    @abstractmethod
    def save_item(self, entity: Entity) -> Entity:
        """
        Create (no id) or update (id) the entity
        :return: the saved entity, with id
        """

    @abstractmethod
    def delete_item(self, id: Any) -> None:
        ...

    @abstractmethod
    def delete_items(self, ids: Sequence[Any]) -> None:
        ...

    def get_relationship_manager(self, name: str) -> "EntityManagerPort":
        """
        :param name: "lists" for the relationship records, "type" for the type lookups
        """
        raise DomainError(f'No sub-manager "{name}" for "{self.get_resource_type()}"')

    @abstractmethod
    def get_resource_type(self) -> str:
        ...

    def list_resource_types(self) -> List[str]:
        return [self.get_resource_type()]

    def list_searchable_attributes(self) -> List[AttributeDescriptor]:
        return []


ManagerFactory = Callable[[Any], EntityManagerPort]


@dataclass
class ManagerRegistry:
    """
    Maps resource type names to manager factories,
    a factory is called with the request context and returns a manager
    """

    factories: Dict[str, ManagerFactory] = field(default_factory=dict)

    def register(self, name: str, factory: ManagerFactory) -> None:
        if name in self.factories:
            jsonadm.log.warning(f'Replacing the manager for "{name}"')
        self.factories[name] = factory

    def create_manager(self, context: Any, name: str) -> EntityManagerPort:
        factory = self.factories.get(name)
        if factory is None:
            raise DomainNotFound(f'Resource "{name}" not available')
        return factory(context)

    def names(self) -> Iterable[str]:
        return list(self.factories)

    def __contains__(self, name: str) -> bool:
        return name in self.factories
