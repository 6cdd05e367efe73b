# Configuration settings should be set in app.config
# The defaults are the JSONADM class variables, environment variables are used when neither is set
import os
import logging
from flask import current_app
import jsonadm
from typing import Any, Optional


def get_config(option: str, default: Optional[Any] = None) -> Any:
    """Retrieve a configuration parameter
    :param option: configuration parameter name
    :param default: returned when the option isn't configured anywhere
    :return: configuration value
    """
    try:
        return current_app.config[option]
    except (KeyError, RuntimeError):
        # no app context or not configured in the app
        pass

    result = os.environ.get(option, None)
    if result is None:
        return getattr(jsonadm.JSONADM, option, default)

    default_value = getattr(jsonadm.JSONADM, option, default)
    if isinstance(default_value, bool):
        return result.lower() in ("1", "true", "yes")
    if isinstance(default_value, int):
        try:
            return int(result)
        except ValueError:
            jsonadm.log.warning(f'Invalid integer for "{option}" in environment: "{result}"')
            return default_value
    if isinstance(default_value, (list, tuple)):
        return [item.strip() for item in result.split(",") if item.strip()]
    return result


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    """
    return jsonadm.log.getEffectiveLevel() < logging.INFO
