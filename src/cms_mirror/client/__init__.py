"""CMS API clients."""

from __future__ import annotations

from .http import CMSClient, ManagementClient
from .response import parse_sync_page

__all__ = ["CMSClient", "ManagementClient", "parse_sync_page"]
