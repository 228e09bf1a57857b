"""HTTP client module for oktadpop.

Provides :class:`ManagementClient`, a blocking client backed by
:class:`httpx.Client` that obtains a DPoP-bound access token and signs a
fresh DPoP proof for every management API request.

Example::

    from oktadpop.client import ManagementClient
    from oktadpop.config import load_settings

    with ManagementClient(load_settings()) as client:
        client.authenticate()
        resp = client.list_users()
"""

from oktadpop.client.management import ManagementClient
from oktadpop.client.response import extract_response_data, format_api_response

__all__ = ["ManagementClient", "extract_response_data", "format_api_response"]
