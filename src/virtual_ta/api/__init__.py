"""virtual-ta HTTP API."""

from virtual_ta.api.app import create_app

__all__ = ["create_app"]
