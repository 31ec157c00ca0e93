"""
Domain Services
Document governance operations built on the authorization resolver

Example:
    ```python
    from docgov.core.permissions import AccessResolver
    from docgov.services import DocumentPermissionManager, MagicLinkService

    resolver = AccessResolver(session)
    await DocumentPermissionManager(session, resolver).grant(
        document_id, tenant_id, can_view=True, can_download=False, granted_by=author_id
    )

    link = await MagicLinkService(session, resolver).issue(document_id, author_id, ttl_days=7, max_views=5)
    result = await MagicLinkService(session).redeem(link.token)
    print(result.access_url)
    ```
"""

from docgov.services.categories import CategoryService
from docgov.services.document_permissions import BulkGrantResult, DocumentPermissionManager
from docgov.services.documents import DocumentLifecycleManager
from docgov.services.magic_links import LinkState, MagicLinkService, RedemptionResult, link_state
from docgov.services.system_settings import SystemSettingsService
from docgov.services.tenancy import TenancyService

__all__ = [
    "BulkGrantResult",
    "CategoryService",
    "DocumentLifecycleManager",
    "DocumentPermissionManager",
    "LinkState",
    "MagicLinkService",
    "RedemptionResult",
    "SystemSettingsService",
    "TenancyService",
    "link_state",
]
