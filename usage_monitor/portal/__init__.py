from usage_monitor.portal.client import PortalClient, PortalError, PortalOfflineError

__all__ = ["PortalClient", "PortalError", "PortalOfflineError"]
