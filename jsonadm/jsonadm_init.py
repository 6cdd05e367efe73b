import logging
import os
import sys
from flask_sqlalchemy import SQLAlchemy


class JSONADM:
    """Configuration defaults for the jsonadm API

    The values can be overridden with the Flask app.config or with environment variables,
    see `jsonadm.config.get_config`
    """

    # Configuration settings are stored as class variables
    DEFAULT_PAGE_LIMIT = 25
    MAX_PAGE_LIMIT = 100
    MAX_PAGE_OFFSET = 2**31
    LOGLEVEL = logging.WARNING
    # resources returned by the OPTIONS request if the client doesn't ask for specific ones
    DOMAINS = [
        "attribute",
        "catalog",
        "coupon",
        "customer",
        "locale",
        "media",
        "order",
        "plugin",
        "price",
        "product",
        "service",
        "supplier",
        "tag",
        "text",
    ]
    CONTENT_TYPE = 'application/vnd.api+json; supported-ext="bulk"'
    BULK_CONTENT_TYPE = 'application/vnd.api+json; ext="bulk"; supported-ext="bulk"'
    ALLOW = "DELETE,GET,POST,OPTIONS"

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        The webserver will catch stderr so we log everything to sys.stderr
        """
        log = logging.getLogger(__name__)
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# DB and logging initialization
#
DB = SQLAlchemy()

try:
    DEBUG = os.getenv("DEBUG", JSONADM.LOGLEVEL)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = JSONADM.init_logging(LOGLEVEL)
