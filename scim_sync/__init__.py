"""SCIM Sync Package.

Provisions local users and groups into external identity providers
(Entra ID, Okta, Google Workspace, generic SCIM 2.0 endpoints).

To sync a user:
    from scim_sync.config import get_settings
    from scim_sync.core.sync_dispatcher import SyncDispatcher

    dispatcher = SyncDispatcher.from_settings(get_settings())
    dispatcher.sync(user, "create")
"""
