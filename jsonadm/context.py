"""
Request scoped context: everything the handler and its helpers need,
passed explicitly instead of being looked up in globals
"""
from typing import Any, Callable, Mapping, Optional
from .config import get_config
from .manager import EntityManagerPort, ManagerRegistry


def _no_translation(domain: str, message: str) -> str:
    return message


class Context:
    """
    :param registry: managers by resource type
    :param config: configuration values for this request, falls back to `get_config`
    :param db: Flask-SQLAlchemy instance used by the SQLAlchemy managers
    :param translate: localization hook, called with the message domain and the message
    """

    def __init__(
        self,
        registry: ManagerRegistry,
        config: Optional[Mapping[str, Any]] = None,
        db: Any = None,
        translate: Optional[Callable[[str, str], str]] = None,
    ) -> None:
        self.registry = registry
        self.config = dict(config or {})
        self.db = db
        self.translate = translate or _no_translation

    def get_config(self, name: str, default: Any = None) -> Any:
        if name in self.config:
            return self.config[name]
        return get_config(name, default)

    def create_manager(self, name: str) -> EntityManagerPort:
        return self.registry.create_manager(self, name)

    def has_manager(self, name: str) -> bool:
        return name in self.registry
