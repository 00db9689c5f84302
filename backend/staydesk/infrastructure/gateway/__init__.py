"""Upstream booking API infrastructure package."""

from .auth_client import RestAuthClient
from .endpoints import DEFAULT_ENDPOINTS, ResourceEndpoints
from .rest_gateway import RestResourceGateway

__all__ = ["RestAuthClient", "DEFAULT_ENDPOINTS", "ResourceEndpoints", "RestResourceGateway"]
