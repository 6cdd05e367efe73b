import operator
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from jsonadm.context import Context
from jsonadm.criteria import Combine, Compare, Negate, SearchCriteria
from jsonadm.errors import NotFoundError
from jsonadm.manager import Entity, EntityManagerPort, ManagerRegistry, RelationshipRecord, attribute_prefix

_OPERATORS = {"==": operator.eq, "!=": operator.ne, ">": operator.gt, "<": operator.lt, ">=": operator.ge, "<=": operator.le}


def _matches(entity: Entity, expression) -> bool:
    if expression is None:
        return True
    if isinstance(expression, Combine):
        results = [_matches(entity, expr) for expr in expression.expressions]
        return all(results) if expression.operator == "&&" else any(results)
    if isinstance(expression, Negate):
        return not _matches(entity, expression.expression)

    assert isinstance(expression, Compare)
    value = entity.get(expression.name)
    if expression.operator == "~=":
        return str(expression.value) in str(value)
    if isinstance(expression.value, list):
        found = str(value) in [str(item) for item in expression.value]
        return found if expression.operator == "==" else not found
    if expression.operator in ("==", "!="):
        return _OPERATORS[expression.operator](str(value), str(expression.value))
    return _OPERATORS[expression.operator](value, expression.value)


class FakeManager(EntityManagerPort):
    """
    In-memory manager, records the calls for the assertions
    """

    def __init__(
        self,
        resource_type: str,
        entity_class=Entity,
        base_condition=None,
        sub_managers: Optional[Dict[str, EntityManagerPort]] = None,
        fail_on: Optional[Callable[[Entity], bool]] = None,
        tree: bool = False,
    ) -> None:
        self.resource_type = resource_type
        self.entity_class = entity_class
        self.base_condition = base_condition
        self.sub_managers = dict(sub_managers or {})
        self.fail_on = fail_on
        self.tree = tree
        self.items: Dict[str, Entity] = {}
        self.searches: List[SearchCriteria] = []
        self.id_searches: List[List[Any]] = []
        self.saved: List[Entity] = []
        self.deleted: List[Any] = []
        self._next_id = 1

    @property
    def prefix(self) -> str:
        return attribute_prefix(self.resource_type)

    def _copy(self, entity: Entity) -> Entity:
        copy = self.entity_class(self.resource_type, entity.attributes, id=entity.id)
        if self.tree:
            copy.parent_id = entity.parent_id
        return copy

    def add(self, attributes: Optional[Dict[str, Any]] = None, parent_id: Any = None) -> Entity:
        entity = self.entity_class(self.resource_type, attributes, id=self._next_id)
        if self.tree:
            entity.parent_id = parent_id
        self._next_id += 1
        self.items[str(entity.id)] = entity
        return self._copy(entity)

    def create_search_criteria(self) -> SearchCriteria:
        return SearchCriteria(condition=self.base_condition)

    def search(self, criteria: SearchCriteria, ref_domains: Sequence[str] = ()):
        self.searches.append(criteria)
        found = [item for item in self.items.values() if _matches(item, criteria.condition)]
        for sortation in reversed(criteria.sortations):
            found.sort(key=lambda item: item.get(sortation.name), reverse=sortation.descending)
        window = found[criteria.offset : criteria.offset + criteria.limit]
        return [self._copy(item) for item in window], len(found)

    def search_by_ids(self, ids: Sequence[Any]) -> List[Entity]:
        self.id_searches.append(list(ids))
        keys = [str(id) for id in ids]
        return [self._copy(item) for key, item in self.items.items() if key in keys]

    def search_children(self, ids: Sequence[Any]) -> List[Entity]:
        if not self.tree:
            return []
        keys = [str(id) for id in ids]
        return [self._copy(item) for item in self.items.values() if str(item.parent_id) in keys]

    def get_item(self, id: Any) -> Entity:
        item = self.items.get(str(id))
        if item is None:
            raise NotFoundError(f'Item with ID "{id}" in "{self.resource_type}" not found')
        return self._copy(item)

    def create_item(self) -> Entity:
        return self.entity_class(self.resource_type)

    def save_item(self, entity: Entity) -> Entity:
        if self.fail_on is not None and self.fail_on(entity):
            raise ValueError(f"Unable to save {entity}")
        if entity.id is None:
            entity.id = self._next_id
            self._next_id += 1
        self.items[str(entity.id)] = self._copy(entity)
        self.saved.append(self._copy(entity))
        return self._copy(entity)

    def delete_item(self, id: Any) -> None:
        self.get_item(id)
        del self.items[str(id)]
        self.deleted.append(id)

    def delete_items(self, ids: Sequence[Any]) -> None:
        for id in ids:
            self.items.pop(str(id), None)
            self.deleted.append(id)

    def get_relationship_manager(self, name: str) -> EntityManagerPort:
        if name in self.sub_managers:
            return self.sub_managers[name]
        return super().get_relationship_manager(name)

    def get_resource_type(self) -> str:
        return self.resource_type

    def list_resource_types(self) -> List[str]:
        result = [self.resource_type]
        for manager in self.sub_managers.values():
            result.extend(manager.list_resource_types())
        return result


class FakeTypeManager(FakeManager):
    def find_item(self, code: str, domain: str) -> Entity:
        for item in self.items.values():
            if item.get(f"{self.prefix}.code") == code and item.get(f"{self.prefix}.domain") == domain:
                return self._copy(item)
        raise NotFoundError(f'Type "{code}" for "{domain}" not found')


def _factory(manager: EntityManagerPort):
    return lambda context: manager


@pytest.fixture
def store() -> SimpleNamespace:
    """
    Orders with products and addresses (relationship records in "order/lists"), a catalog tree
    """
    list_types = FakeTypeManager("order/lists/type")
    list_types.add({"order.lists.type.code": "default", "order.lists.type.domain": "order/product"})
    list_types.add({"order.lists.type.code": "default", "order.lists.type.domain": "order/address"})

    order_types = FakeTypeManager("order/type")
    order_types.add({"order.type.code": "web", "order.type.domain": "order"})

    lists = FakeManager("order/lists", entity_class=RelationshipRecord, sub_managers={"type": list_types})
    order = FakeManager("order", sub_managers={"lists": lists, "type": order_types})
    product = FakeManager("order/product")
    address = FakeManager("order/address")
    catalog = FakeManager("catalog", tree=True)

    first = order.add({"order.status": 1, "order.price": "10.00"})
    second = order.add({"order.status": 0, "order.price": "25.00"})

    for position in range(6):
        prod = product.add({"order.product.prodcode": f"P{position}", "order.product.quantity": position + 1})
        lists.add(
            {
                "order.lists.parentid": first.id,
                "order.lists.domain": "order/product",
                "order.lists.refid": prod.id,
                "order.lists.position": position,
            }
        )

    # the second order shares products with the first one
    for refid in (2, 3):
        lists.add({"order.lists.parentid": second.id, "order.lists.domain": "order/product", "order.lists.refid": refid, "order.lists.position": 0})

    addr = address.add({"order.address.city": "Berlin"})
    lists.add({"order.lists.parentid": first.id, "order.lists.domain": "order/address", "order.lists.refid": addr.id, "order.lists.position": 0})

    root = catalog.add({"catalog.code": "root"})
    catalog.add({"catalog.code": "shoes"}, parent_id=root.id)
    catalog.add({"catalog.code": "shirts"}, parent_id=root.id)

    registry = ManagerRegistry()
    for manager in (order, product, address, catalog):
        registry.register(manager.resource_type, _factory(manager))

    return SimpleNamespace(
        registry=registry,
        order=order,
        lists=lists,
        list_types=list_types,
        order_types=order_types,
        product=product,
        address=address,
        catalog=catalog,
    )


@pytest.fixture
def context(store: SimpleNamespace) -> Context:
    config = {"DEFAULT_PAGE_LIMIT": 25, "MAX_PAGE_LIMIT": 100, "MAX_PAGE_OFFSET": 2**31, "DOMAINS": ["order", "catalog"]}
    return Context(store.registry, config=config)
