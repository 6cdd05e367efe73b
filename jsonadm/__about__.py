__version__ = "0.3.0"
__description__ = "jsonadm : JSON:API admin interface for entity managers"
