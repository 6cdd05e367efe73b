"""
Saving the entries of POST and PATCH requests

Every save is independent: there's no transaction around a batch or around an entry and its
relationship records. The first failing save aborts the request and the error propagates
to the handler.
"""
from typing import Any, Dict, List, Mapping, Sequence
import jsonadm
from .manager import Entity, EntityManagerPort, attribute_prefix
from .payload import RequestEntry


class EntryPersister:
    def save_batch(self, manager: EntityManagerPort, entries: Sequence[RequestEntry]) -> List[Entity]:
        """
        Save the entries in input order
        :return: the saved entities
        """
        return [self.save_entry(manager, entry) for entry in entries]

    def save_entry(self, manager: EntityManagerPort, entry: RequestEntry) -> Entity:
        """
        Create (entry.id is None) or update the entity and save its relationship records
        :return: the saved entity as stored
        """
        if entry.id is not None:
            item = manager.get_item(entry.id)
        else:
            item = manager.create_item()

        item = self.add_item_data(manager, item, entry.attributes, item.resource_type)
        item = manager.save_item(item)
        jsonadm.log.debug(f"Saved {item}")

        if entry.relationships:
            self.save_relationships(manager, item, entry.relationships)

        # fetch again to get the values computed by the storage
        return manager.get_item(item.id)

    def save_relationships(self, manager: EntityManagerPort, item: Entity, relationships: Mapping[str, Sequence[RequestEntry]]) -> None:
        """
        Save the list items associating `item` with the referenced entities
        :param relationships: relationship payloads by domain
        """
        list_manager = manager.get_relationship_manager("lists")

        for domain, rel_entries in relationships.items():
            for rel_entry in rel_entries:
                list_item = self.add_item_data(list_manager, list_manager.create_item(), rel_entry.attributes, domain)

                if rel_entry.id is not None:
                    list_item.ref_id = rel_entry.id

                list_item.parent_id = item.id
                list_item.domain = domain

                list_manager.save_item(list_item)

    @staticmethod
    def add_item_data(manager: EntityManagerPort, item: Entity, attributes: Mapping[str, Any], domain: str) -> Entity:
        """
        Add the attributes to the item,
        a type code ("<prefix>.type") is replaced by the id of the type item ("<prefix>.typeid")

        :param manager: manager of the item, its "type" sub-manager resolves the type codes
        :param domain: domain of the type item
        """
        if not attributes:
            return item

        attributes: Dict[str, Any] = dict(attributes)
        key = attribute_prefix(item.resource_type)

        if attributes.get(f"{key}.type") is not None:
            type_item = manager.get_relationship_manager("type").find_item(attributes[f"{key}.type"], domain)
            attributes[f"{key}.typeid"] = type_item.id

        return item.from_dict(attributes)
