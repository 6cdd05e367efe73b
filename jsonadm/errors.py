# Exceptions
#
# The exceptions are caught by the `jsonapi_method` decorator in handler.py and formatted, for example:
# {
#      "title": "Client generated IDs are not supported",
#      "detail": "Traceback (most recent call last): ..."
# }
#
# The status_code of the exception determines the HTTP status of the response
#
from http import HTTPStatus
from sqlalchemy.exc import DontWrapMixin
import jsonadm


class JsonadmError(Exception, DontWrapMixin):
    """
    Base class of the errors that carry their own HTTP status code
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = ""

    def __init__(self, message="", status_code=None):
        Exception.__init__(self, message)
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.message

    def __str__(self):
        return self.message


class ValidationError(JsonadmError):
    """
    This exception is raised when invalid input has been detected (client side input)
    Always send back the message to the client in the response
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "Validation Error"

    def __init__(self, message="", status_code=None):
        super().__init__(message, status_code)
        jsonadm.log.warning("ValidationError: %s", self.message)


class InvalidBody(ValidationError):
    """
    The request body isn't valid JSON or doesn't contain a "data" member
    """

    message = "Invalid JSON in body"


class InvalidParameter(ValidationError):
    """
    A query parameter (filter, page) can't be interpreted
    """

    message = "Invalid parameter"


class MissingId(ValidationError):
    """
    A write request requires an id but none was given
    """

    message = "No ID given"


class ForbiddenClientId(ValidationError):
    """
    IDs are always assigned by the server on creation
    """

    status_code = HTTPStatus.FORBIDDEN.value
    message = "Client generated IDs are not supported"


class DomainError(JsonadmError):
    """
    This exception is raised by the managers, e.g. for unknown fields or sub-managers
    """

    status_code = HTTPStatus.NOT_FOUND.value
    message = "Domain Error"

    def __init__(self, message="", status_code=None):
        super().__init__(message, status_code)
        jsonadm.log.error("DomainError: %s", self.message)


class NotFoundError(DomainError):
    """
    This exception is raised when an item was not found
    """

    message = "Item not found"


class DomainNotFound(DomainError):
    """
    No manager is registered for the requested resource type
    """

    message = "Resource not found"


class GenericError(JsonadmError):
    """
    This exception is raised when an error has been detected
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "Generic Error"

    def __init__(self, message="", status_code=None):
        super().__init__(message, status_code)
        jsonadm.log.error("Generic Error: %s", self.message)
