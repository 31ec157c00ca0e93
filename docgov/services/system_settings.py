"""
System Settings Service
Runtime-editable platform settings with configuration fallbacks
"""

import uuid
from typing import Any, Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.config import settings
from docgov.core.exceptions import NotFoundException, ValidationException
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.models import SystemSetting

logger = get_logger(__name__)

MAGIC_LINK_DEFAULT_EXPIRY_DAYS = "magic_link_default_expiry_days"
MAGIC_LINK_MAX_VIEWS_DEFAULT = "magic_link_max_views_default"
MAGIC_LINK_ENABLED = "magic_link_enabled"
MAX_FILE_SIZE_MB = "max_file_size_mb"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_expiry_days(value: Any) -> Any:
    if not _is_int(value) or not 1 <= value <= settings.MAGIC_LINK_MAX_TTL_DAYS:
        raise ValidationException(
            message=f"Expiry must be a whole number of days between 1 and {settings.MAGIC_LINK_MAX_TTL_DAYS}",
            details={"value": value},
        )
    return value


def _validate_max_views(value: Any) -> Any:
    if value is not None and (not _is_int(value) or value < 1):
        raise ValidationException(
            message="Default max views must be a positive integer or null",
            details={"value": value},
        )
    return value


def _validate_enabled(value: Any) -> Any:
    if not isinstance(value, bool):
        raise ValidationException(message="Value must be a boolean", details={"value": value})
    return value


def _validate_file_size(value: Any) -> Any:
    if not _is_int(value) or not 1 <= value <= 1024:
        raise ValidationException(
            message="Max file size must be between 1 and 1024 MB",
            details={"value": value},
        )
    return value


# key -> (description, validator, configuration default)
SETTING_DEFINITIONS: Dict[str, tuple[str, Callable[[Any], Any], Callable[[], Any]]] = {
    MAGIC_LINK_DEFAULT_EXPIRY_DAYS: (
        "Days a magic link stays valid when no TTL is given",
        _validate_expiry_days,
        lambda: settings.MAGIC_LINK_DEFAULT_TTL_DAYS,
    ),
    MAGIC_LINK_MAX_VIEWS_DEFAULT: (
        "View limit applied when no max_views is given (null = unlimited)",
        _validate_max_views,
        lambda: settings.MAGIC_LINK_DEFAULT_MAX_VIEWS,
    ),
    MAGIC_LINK_ENABLED: (
        "Whether new magic links may be issued",
        _validate_enabled,
        lambda: settings.MAGIC_LINKS_ENABLED,
    ),
    MAX_FILE_SIZE_MB: (
        "Largest accepted upload in megabytes",
        _validate_file_size,
        lambda: settings.MAX_UPLOAD_SIZE_MB,
    ),
}


class SystemSettingsService:
    """Read and update platform settings"""

    def __init__(self, db: AsyncSession, resolver: Optional[AccessResolver] = None):
        self.db = db
        self.resolver = resolver or AccessResolver(db)

    async def get_all(self) -> Dict[str, Any]:
        values = {key: default() for key, (_, _, default) in SETTING_DEFINITIONS.items()}
        result = await self.db.execute(select(SystemSetting))
        for row in result.scalars().all():
            if row.key in values:
                values[row.key] = row.value
        return values

    async def get(self, key: str) -> Any:
        if key not in SETTING_DEFINITIONS:
            raise NotFoundException("Setting", details={"key": key})

        result = await self.db.execute(
            select(SystemSetting.value).where(SystemSetting.key == key)
        )
        row = result.first()
        if row is None:
            return SETTING_DEFINITIONS[key][2]()
        return row[0]

    async def update(self, key: str, value: Any, updated_by: uuid.UUID) -> Any:
        """Persist a setting (super admin only)"""
        if key not in SETTING_DEFINITIONS:
            raise NotFoundException("Setting", details={"key": key})
        await self.resolver.require_super_admin(updated_by)

        description, validate, _ = SETTING_DEFINITIONS[key]
        value = validate(value)

        result = await self.db.execute(select(SystemSetting).where(SystemSetting.key == key))
        setting = result.scalar_one_or_none()
        if setting is None:
            setting = SystemSetting(key=key, value=value, description=description, updated_by=updated_by)
            self.db.add(setting)
        else:
            setting.value = value
            setting.updated_by = updated_by
        await self.db.commit()

        logger.info(f"Setting {key} updated to {value!r} by {updated_by}")
        return value
