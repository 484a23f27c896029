"""Core Business Logic Module

Pure Python provisioning logic, independent of any web framework.

Module Structure:
    - models.py           : User/Group records, provider configuration, outcomes
    - scim_transformer.py : Local ↔ SCIM 2.0 transformations
    - providers/          : Credential strategies and request building
    - sync_dispatcher.py  : Multi-provider fan-out with per-provider isolation
    - identity_service.py : In-memory user/group lifecycle services
    - validators.py       : Input validation
    - audit.py            : Signed per-provider sync audit trail

Usage Pattern:
    Import explicitly when needed:
        from scim_sync.core.scim_transformer import ScimTransformer
        from scim_sync.core.sync_dispatcher import SyncDispatcher
        from scim_sync.core.identity_service import UserService, ScimError
"""
