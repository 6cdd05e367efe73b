# flake8: noqa: F401
#
# jsonadm_init has to be imported first: the other modules use jsonadm.log and jsonadm.JSONADM
#
from .jsonadm_init import DB, log, JSONADM
from .errors import JsonadmError, ValidationError, DomainError, NotFoundError, GenericError
from .criteria import SearchCriteria, CriteriaBuilder, compare, combine, negate, sort
from .manager import Entity, RelationshipRecord, AttributeDescriptor, EntityManagerPort, ManagerRegistry
from .context import Context
from .handler import ResourceHandler
from .jsonapi import jsonapi_format_response
from .json_encoder import JsonAdmJSONProvider
from .request import JsonAdmRequest
from .db import SQLAManager, SQLATypeManager, ListItemMixin, TypeItemMixin
from .api import JsonAdmApi
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "JsonAdmApi",
    "ResourceHandler",
    "Context",
    # managers:
    "Entity",
    "RelationshipRecord",
    "AttributeDescriptor",
    "EntityManagerPort",
    "ManagerRegistry",
    "SQLAManager",
    "SQLATypeManager",
    "ListItemMixin",
    "TypeItemMixin",
    # criteria:
    "SearchCriteria",
    "CriteriaBuilder",
    "compare",
    "combine",
    "negate",
    "sort",
    # jsonapi:
    "jsonapi_format_response",
    "JsonAdmJSONProvider",
    "JsonAdmRequest",
    # Errors:
    "JsonadmError",
    "ValidationError",
    "DomainError",
    "NotFoundError",
    "GenericError",
)
