# flask_restful API subclass exposing the resource handler
#
# All resources share one endpoint, the url path selects the resource type and the id:
#   /jsonadm/product            -> resource "product"
#   /jsonadm/product/1          -> resource "product", id "1"
#   /jsonadm/order/product/3    -> resource "order/product", id "3"
#
import logging
from typing import Any, Callable, Optional, Tuple
from flask import Flask, jsonify, make_response, request
from flask_restful import Api, Resource
import jsonadm
from .config import is_debug
from .context import Context
from .handler import ResourceHandler
from .json_encoder import JsonAdmJSONProvider
from .jsonapi import jsonapi_format_response
from .manager import ManagerFactory, ManagerRegistry
from .request import JsonAdmRequest


class ResourceView(Resource):
    """
    Dispatches the HTTP requests to a ResourceHandler and renders the result
    """

    def __init__(self, api: "JsonAdmApi") -> None:
        self.api = api

    def get(self, path: str = ""):
        return self.handle("get", path)

    def post(self, path: str = ""):
        return self.handle("post", path)

    def patch(self, path: str = ""):
        return self.handle("patch", path)

    def put(self, path: str = ""):
        return self.handle("put", path)

    def delete(self, path: str = ""):
        return self.handle("delete", path)

    def options(self, path: str = ""):
        return self.handle("options", path)

    def handle(self, method: str, path: str):
        resource, id = self.api.split_path(path)
        params = request.jsonapi_params
        if id is not None:
            params["id"] = id
        if method == "options" and resource:
            params.setdefault("resource", resource)

        if is_debug():
            jsonadm.log.debug(f"{method.upper()} {resource} params: {params}")

        handler = ResourceHandler(self.api.create_context(), resource)
        result = getattr(handler, method)(request.get_data(), params)
        jsonadm.log.debug(f"{method.upper()} {path}: {result.status}")

        if result.status >= 400 and self.api.db is not None:
            # discard the changes of a partially processed request
            self.api.db.session.rollback()

        base_url = request.host_url.rstrip("/") + (self.api.prefix or "")
        response = make_response(jsonify(jsonapi_format_response(result.view, base_url)), result.status)
        for name, value in result.headers.items():
            response.headers[name] = value
        return response


class JsonAdmApi(Api):
    """
    :param app: Flask app, or None to call init_app later
    :param registry: managers by resource type
    :param prefix: url prefix of the API
    :param db: Flask-SQLAlchemy instance, defaults to the one registered with the app
    :param translate: localization hook for the error titles, called with (domain, message)
    :param config: configuration values overriding app.config and the JSONADM defaults
    """

    def __init__(
        self,
        app: Optional[Flask] = None,
        registry: Optional[ManagerRegistry] = None,
        prefix: str = "/jsonadm",
        db: Any = None,
        translate: Optional[Callable[[str, str], str]] = None,
        **config,
    ) -> None:
        self.registry = registry if registry is not None else ManagerRegistry()
        self.db = db
        self.translate = translate
        self.config = config
        super().__init__(app, prefix=prefix, default_mediatype="application/vnd.api+json")
        self.add_resource(ResourceView, "/", "/<path:path>", endpoint="jsonadm", resource_class_kwargs={"api": self}, strict_slashes=False)

    def init_app(self, app: Flask) -> None:
        """
        API and application initialization
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        app.request_class = JsonAdmRequest
        app.json = JsonAdmJSONProvider(app)

        if self.db is None:
            self.db = app.extensions.get("sqlalchemy")

        if app.config.get("DEBUG", False):
            jsonadm.log.setLevel(logging.DEBUG)

        super().init_app(app)

    def expose(self, name: str, factory: ManagerFactory) -> None:
        """
        Make the resource type available
        :param name: resource type, e.g. "order/product"
        :param factory: called with the request context, returns the manager
        """
        self.registry.register(name, factory)
        jsonadm.log.info(f'Exposing resource "{name}"')

    def create_context(self) -> Context:
        return Context(self.registry, config=self.config, db=self.db, translate=self.translate)

    def split_path(self, path: str) -> Tuple[str, Optional[str]]:
        """
        :param path: url path below the prefix
        :return: resource type and id (or None)
        """
        path = (path or "").strip("/")
        if not path or path in self.registry:
            return path, None

        resource, _, id = path.rpartition("/")
        if resource and resource in self.registry:
            return resource, id

        # unknown resource, the handler responds with 404
        return path, None
