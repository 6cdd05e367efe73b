# jsonadm to json encoding

import datetime
import decimal
from flask.json.provider import DefaultJSONProvider
from uuid import UUID
import jsonadm
from .manager import AttributeDescriptor, Entity


class _JsonAdmJSONEncoder:
    """
    JSON encoding for the attribute values of the entities and common types
    """

    # pylint: disable=too-many-return-statements,arguments-differ,method-hidden
    def default(self, obj, **kwargs):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if obj is None:
            return None
        if isinstance(obj, Entity):
            return {"id": str(obj.id), "type": obj.resource_type}
        if isinstance(obj, AttributeDescriptor):
            return obj.to_dict()
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, datetime.datetime):
            return obj.isoformat(" ")
        if isinstance(obj, (datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, set):
            return list(obj)
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, decimal.Decimal):
            return float(obj)
        if isinstance(obj, bytes):
            if obj == b"":
                return ""
            jsonadm.log.debug("JsonAdmJSONEncoder: serializing bytes obj")
            return obj.hex()

        jsonadm.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
        return str(obj)


class JsonAdmJSONProvider(_JsonAdmJSONEncoder, DefaultJSONProvider):
    """
    Flask JSON encoding
    """

    mimetype = "application/vnd.api+json"
    # keep the member order of the documents (resources, relationships)
    sort_keys = False
