"""
ResourceHandler: implements the HTTP methods for one resource type

    handler = ResourceHandler(context, "product")
    result = handler.get(body, params)
    result.status, result.headers, result.view

The methods never raise: the `jsonapi_method` decorator converts the exceptions into a status code
and an error object in the view:
- JsonadmError subclasses: their own status code (400, 403, 404 for domain errors)
- anything else: 500
"""
import traceback
from functools import wraps
from http import HTTPStatus
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
import jsonadm
from .criteria import CriteriaBuilder
from .errors import DomainError, ForbiddenClientId, InvalidBody, JsonadmError, MissingId, ValidationError
from .persister import EntryPersister
from .payload import parse, extract_ids
from .resolver import RelationshipResolver, parse_include
from .view import HandlerResult, ViewModel


def error_status(context, exc: Exception) -> Tuple[int, str]:
    """
    :return: HTTP status code and translated title for the exception
    """
    if isinstance(exc, DomainError):
        # already logged by the exception
        return exc.status_code, context.translate("mshop", exc.message)
    if isinstance(exc, JsonadmError):
        return exc.status_code, context.translate("admin/jsonadm", exc.message)

    jsonadm.log.exception(exc)
    return HTTPStatus.INTERNAL_SERVER_ERROR.value, str(exc) or exc.__class__.__name__


def jsonapi_method(fun: Callable) -> Callable:
    """Decorator for the HTTP methods of the ResourceHandler
    - the wrapped method returns the status code
    - all exceptions are converted to an error object and a status code

    :param fun: handler method with (view, headers, body, params) arguments
    :return: method with (body, params) arguments returning a HandlerResult
    """

    @wraps(fun)
    def method_wrapper(self, body: Any = None, params: Optional[Mapping[str, Any]] = None) -> HandlerResult:
        params = dict(params or {})
        view = ViewModel(params=params)
        headers = {"Content-Type": jsonadm.JSONADM.CONTENT_TYPE}

        try:
            status = fun(self, view, headers, body, params)
        except Exception as exc:
            status, title = error_status(self.context, exc)
            view.errors = [{"title": title, "detail": traceback.format_exc()}]

        return HandlerResult(status, headers, view)

    return method_wrapper


class ResourceHandler:
    """
    :param context: request context
    :param path: resource type, e.g. "product" or "order/product"
    """

    def __init__(self, context, path: str) -> None:
        self.context = context
        self.path = path
        self.resolver = RelationshipResolver(context)
        self.persister = EntryPersister()

    @jsonapi_method
    def delete(self, view: ViewModel, headers: Dict[str, str], body: Any, params: Dict[str, Any]) -> int:
        """
        Delete the item with the id given in the url or the items given in the body:
        {"data": [{"id": "1"}, {"id": "2"}]}
        """
        manager = self.context.create_manager(self.path)
        id = params.get("id")

        if id in (None, ""):
            parsed = parse(body)
            if not parsed.bulk:
                raise InvalidBody()
            ids = extract_ids(parsed)
            manager.delete_items(ids)
            view.total = len(ids)
        else:
            manager.delete_item(id)
            view.total = 1

        return HTTPStatus.OK.value

    @jsonapi_method
    def get(self, view: ViewModel, headers: Dict[str, str], body: Any, params: Dict[str, Any]) -> int:
        """
        Return the item with the id given in the url or the items matching the filter, sort and page parameters
        """
        manager = self.context.create_manager(self.path)
        include = parse_include(params.get("include"))
        id = params.get("id")

        if id in (None, ""):
            builder = CriteriaBuilder.from_context(self.context)
            criteria = builder.build(params, manager.create_search_criteria())
            view.data, view.total = manager.search(criteria, include)
            items = {item.id: item for item in view.data}
        else:
            view.data = manager.get_item(id)
            view.total = 1
            items = {view.data.id: view.data}

        view.child_items, view.list_items, view.included = self.resolver.resolve(manager, items, include)
        return HTTPStatus.OK.value

    @jsonapi_method
    def patch(self, view: ViewModel, headers: Dict[str, str], body: Any, params: Dict[str, Any]) -> int:
        """
        Update the item (id in the url or in the body) or the list of items given in the body
        """
        parsed = parse(body)
        manager = self.context.create_manager(self.path)

        if parsed.bulk:
            view.data = self.persister.save_batch(manager, parsed.entries)
            view.total = len(view.data)
            headers["Content-Type"] = jsonadm.JSONADM.BULK_CONTENT_TYPE
            return HTTPStatus.OK.value

        entry = parsed.entry
        id = params.get("id")
        if id in (None, ""):
            id = entry.id
        elif entry.id is not None and str(entry.id) != str(id):
            raise ValidationError(f'ID in body "{entry.id}" doesn\'t match ID "{id}"')

        if id in (None, ""):
            raise MissingId()

        entry.id = id
        view.data = self.persister.save_entry(manager, entry)
        view.total = 1
        return HTTPStatus.OK.value

    @jsonapi_method
    def post(self, view: ViewModel, headers: Dict[str, str], body: Any, params: Dict[str, Any]) -> int:
        """
        Create the item or the list of items given in the body, ids are assigned by the server
        """
        parsed = parse(body)

        if parsed.client_ids() or params.get("id") not in (None, ""):
            raise ForbiddenClientId()

        manager = self.context.create_manager(self.path)
        for entry in parsed.entries:
            entry.id = None

        if parsed.bulk:
            view.data = self.persister.save_batch(manager, parsed.entries)
            view.total = len(view.data)
            headers["Content-Type"] = jsonadm.JSONADM.BULK_CONTENT_TYPE
        else:
            view.data = self.persister.save_entry(manager, parsed.entry)
            view.total = 1

        return HTTPStatus.CREATED.value

    def put(self, body: Any = None, params: Optional[Mapping[str, Any]] = None) -> HandlerResult:
        """
        Replacing resources isn't supported, clients have to use PATCH
        """
        view = ViewModel(params=dict(params or {}))
        view.errors = [{"title": self.context.translate("admin/jsonadm", "Not implemented, use PATCH instead")}]
        headers = {"Content-Type": jsonadm.JSONADM.CONTENT_TYPE}
        return HandlerResult(HTTPStatus.NOT_IMPLEMENTED.value, headers, view)

    @jsonapi_method
    def options(self, view: ViewModel, headers: Dict[str, str], body: Any, params: Dict[str, Any]) -> int:
        """
        Return the available resource types and their searchable attributes
        """
        resources = []
        attributes = []

        for domain in self.get_domains(params):
            manager = self.context.create_manager(domain)
            resources.extend(manager.list_resource_types())
            attributes.extend(manager.list_searchable_attributes())

        view.resources = resources
        view.attributes = attributes
        headers["Allow"] = jsonadm.JSONADM.ALLOW
        return HTTPStatus.OK.value

    def get_domains(self, params: Mapping[str, Any]) -> list:
        """
        :return: the domains from the "resource" parameter or the configured domains
        """
        domains = params.get("resource")
        if not domains:
            domains = self.context.get_config("DOMAINS")
        if isinstance(domains, str):
            domains = [domain.strip() for domain in domains.split(",") if domain.strip()]
        return list(domains or [])
