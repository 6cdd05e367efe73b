"""
Related items for the "included" part of the JSON:API response
(https://jsonapi.org/format/#fetching-includes)

- child items: parent/child entities of the same resource type (trees)
- list items: relationship records associating the primary entities with entities of other domains
- included: the referenced entities, each (domain, id) only once

The storage is queried once per domain, never per primary entity
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import jsonadm
from .criteria import combine, compare, sort
from .errors import DomainError
from .manager import Entity, EntityManagerPort, RelationshipRecord, attribute_prefix

# relationship records are fetched without paging
UNLIMITED = 2**31 - 1


def parse_include(include: Any) -> List[str]:
    """
    :param include: csv string or list of relation paths
    :return: unique relation paths in request order
    """
    if not include:
        return []
    if isinstance(include, str):
        include = include.split(",")
    result = []
    for path in include:
        path = str(path).strip()
        if path and path not in result:
            result.append(path)
    return result


class RelationshipResolver:
    def __init__(self, context) -> None:
        self.context = context

    def resolve(
        self, manager: EntityManagerPort, items: Mapping[Any, Entity], include: Sequence[str]
    ) -> Tuple[List[Entity], List[RelationshipRecord], List[Entity]]:
        """
        :param manager: manager of the primary entities
        :param items: primary entities by id
        :param include: requested relation paths (domains)
        :return: child items, list items, included entities
        """
        include = parse_include(include)
        if not items or not include:
            return [], [], []

        child_items = self.get_child_items(manager, items, include)
        list_items = self.get_list_items(manager, items, include)

        included = Included()
        included.extend(child_items)
        included.extend(self.get_ref_items(list_items, include))

        return child_items, list_items, included.items

    def get_child_items(self, manager: EntityManagerPort, items: Mapping[Any, Entity], include: Sequence[str]) -> List[Entity]:
        """
        Children are only returned if the resource type itself is included, e.g. include=catalog for catalogs
        """
        if manager.get_resource_type() not in include:
            return []
        return manager.search_children(list(items))

    def get_list_items(self, manager: EntityManagerPort, items: Mapping[Any, Entity], include: Sequence[str]) -> List[RelationshipRecord]:
        """
        Fetch the relationship records of all primary items, one query for each included domain
        """
        try:
            list_manager = manager.get_relationship_manager("lists")
        except DomainError:
            jsonadm.log.debug(f'"{manager.get_resource_type()}" has no relationship records')
            return []

        prefix = attribute_prefix(list_manager.get_resource_type())
        ids = list(items)
        result = []

        for domain in include:
            if domain == manager.get_resource_type():
                continue
            if not self.context.has_manager(domain):
                jsonadm.log.debug(f'Ignoring unknown include "{domain}"')
                continue

            criteria = list_manager.create_search_criteria()
            condition = combine(
                "&&",
                [
                    compare("==", f"{prefix}.parentid", ids),
                    compare("==", f"{prefix}.domain", domain),
                    criteria.condition,
                ],
            )
            criteria = criteria.with_condition(condition).with_sortations([sort("+", f"{prefix}.position")]).with_slice(0, UNLIMITED)
            list_items, _ = list_manager.search(criteria)
            result.extend(list_items)

        return result

    def get_ref_items(self, list_items: Iterable[RelationshipRecord], include: Sequence[str]) -> List[Entity]:
        """
        Fetch the entities referenced by the list items, one query per domain
        """
        ref_ids: Dict[str, List[Any]] = {}
        for list_item in list_items:
            ids = ref_ids.setdefault(list_item.domain, [])
            if list_item.ref_id is not None and list_item.ref_id not in ids:
                ids.append(list_item.ref_id)

        # domains in the order they appear in the include list
        domains = [domain for domain in include if domain in ref_ids]
        domains += [domain for domain in ref_ids if domain not in domains]

        result = []
        for domain in domains:
            if not ref_ids[domain] or not self.context.has_manager(domain):
                continue
            ref_manager = self.context.create_manager(domain)
            result.extend(ref_manager.search_by_ids(ref_ids[domain]))
        return result


class Included:
    """
    Ordered set of the included entities, keyed by (resource type, id)
    """

    def __init__(self, items: Optional[Iterable[Entity]] = None) -> None:
        self._items: Dict[Tuple[str, str], Entity] = {}
        if items:
            self.extend(items)

    def add(self, item: Entity) -> bool:
        if item.key in self._items:
            return False
        self._items[item.key] = item
        return True

    def extend(self, items: Iterable[Entity]) -> None:
        for item in items:
            self.add(item)

    @property
    def items(self) -> List[Entity]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item: Entity) -> bool:
        return item.key in self._items
