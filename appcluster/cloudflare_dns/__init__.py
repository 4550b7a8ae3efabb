from .client import CloudflareClient
from .resolver import DnsRoleResolver, determine_resource_status

__all__ = ["CloudflareClient", "DnsRoleResolver", "determine_resource_status"]
