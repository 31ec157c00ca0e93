# API v1 routes
from fastapi import APIRouter

from docgov.api.v1 import auth, categories, documents, magic_links, permissions, principals, settings, tenants
from docgov.models.common import ErrorResponse

router = APIRouter(
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(documents.router, prefix="/documents", tags=["documents"])
router.include_router(permissions.router, prefix="/permissions", tags=["permissions"])
router.include_router(magic_links.router, prefix="/magic-links", tags=["magic-links"])
router.include_router(tenants.router, prefix="/tenants", tags=["tenants"])
router.include_router(principals.router, prefix="/principals", tags=["principals"])
router.include_router(settings.router, prefix="/settings", tags=["settings"])
router.include_router(categories.router, prefix="/categories", tags=["categories"])
