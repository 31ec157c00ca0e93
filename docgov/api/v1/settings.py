"""
System Settings API Routes
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.api.dependencies import get_access_resolver, get_current_principal
from docgov.core.permissions import AccessResolver
from docgov.db.models import Principal
from docgov.db.session import get_db_session
from docgov.services.system_settings import SystemSettingsService

router = APIRouter()


class SettingUpdateRequest(BaseModel):
    value: Any = None


class SettingResponse(BaseModel):
    key: str
    value: Any = None


@router.get("", response_model=Dict[str, Any])
async def get_settings(
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Current value of every platform setting"""
    return await SystemSettingsService(db, resolver).get_all()


@router.put("/{key}", response_model=SettingResponse)
async def update_setting(
    key: str,
    request: SettingUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Update a platform setting (super admin)"""
    value = await SystemSettingsService(db, resolver).update(key, request.value, current_principal.id)
    return SettingResponse(key=key, value=value)
