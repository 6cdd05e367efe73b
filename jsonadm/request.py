"""
http://jsonapi.org/format/#content-negotiation-servers

The request class parses the jsonapi related request arguments:
- header: Content-Type "application/vnd.api+json" and the requested extensions (bulk)
- query args: bracket notation, e.g. page[offset]=0&page[limit]=10&filter[==][product.code]=abc&fields[product]=product.code
"""

import re
from typing import Any, Dict, Iterable, Tuple
from flask import Request

KEY_PATTERN = re.compile(r"\[([^\[\]]*)\]")


def split_key(arg: str):
    """
    "filter[==][product.code]" -> ["filter", "==", "product.code"]
    """
    base = arg.split("[", 1)[0]
    rest = arg[len(base) :]
    keys = KEY_PATTERN.findall(rest)
    if not base or "".join(f"[{key}]" for key in keys) != rest:
        # not a valid bracket notation, keep the name as it is
        return [arg]
    return [base] + keys


def parse_query_args(items: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """
    Convert the flat query arguments into nested parameters
    :param items: (name, value) pairs, a name may occur more than once
    :return: nested dictionary
    """
    result: Dict[str, Any] = {}

    for arg, value in items:
        keys = split_key(arg)
        is_list = len(keys) > 1 and keys[-1] == ""
        if is_list:
            # list notation: resource[]=product&resource[]=order
            keys = keys[:-1]

        target = result
        for key in keys[:-1]:
            node = target.get(key)
            if not isinstance(node, dict):
                node = target[key] = {}
            target = node

        last = keys[-1]
        if is_list:
            values = target.get(last)
            if not isinstance(values, list):
                values = target[last] = []
            values.append(value)
        else:
            target[last] = value

    return result


# pylint: disable=too-many-ancestors
class JsonAdmRequest(Request):
    """
    Request class with the parsed jsonapi parameters
    """

    jsonapi_content_types = ["application/json", "application/vnd.api+json"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.is_jsonapi = False  # indicates whether this is a jsonapi request
        self._extensions = set()
        self.parse_content_type()

    def parse_content_type(self):
        """
        Check if the request content type is jsonapi and any requested extensions
        """
        if not isinstance(self.content_type, str):  # pragma: no cover
            return

        content_type = self.content_type.split(";")[0].strip()
        if content_type not in self.jsonapi_content_types:
            return

        self.is_jsonapi = True

        for ext in self.content_type.split(";")[1:]:
            ext = ext.strip().split("=", 1)
            if ext[0] == "ext" and ext[1:]:
                for ext_name in ext[1].strip('"').split(","):
                    self._extensions.add(ext_name.strip())

    @property
    def is_bulk(self):
        """
        jsonapi bulk extension, http://springbot.github.io/json-api/extensions/bulk/
        """
        return "bulk" in self._extensions

    @property
    def jsonapi_params(self) -> Dict[str, Any]:
        """
        :return: nested query parameters
        """
        return parse_query_args(self.args.items(multi=True))
