"""Setting service for the admin-controlled messaging settings."""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parley.config import MessagingConfig
from parley.db.models import Setting

# Setting keys
MESSAGING_ENABLED_KEY = "messaging_enabled"
MAX_MESSAGE_LENGTH_KEY = "max_message_length"


@dataclass(frozen=True)
class MessagingSettings:
    """Snapshot of the global messaging switches handed to the gateway."""

    messaging_enabled: bool = True
    max_message_length: int = 500

    def is_messaging_enabled(self) -> bool:
        return self.messaging_enabled

    def get_max_message_length(self) -> int:
        return self.max_message_length


async def get_setting(
    db_session: AsyncSession,
    key: str,
) -> str | None:
    """Get a setting value by key.

    Args:
        db_session: Database session
        key: Setting key

    Returns:
        Setting value or None if not found
    """
    result = await db_session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    return setting.value if setting else None


async def get_settings(
    db_session: AsyncSession,
    keys: list[str],
) -> dict[str, str | None]:
    """Get several settings at once as a ``{key: value}`` dictionary."""
    result = await db_session.execute(select(Setting).where(Setting.key.in_(keys)))
    return {s.key: s.value for s in result.scalars().all()}


async def set_setting(
    db_session: AsyncSession,
    key: str,
    value: str | None,
) -> Setting:
    """Set a setting value, creating or updating as needed.

    Args:
        db_session: Database session
        key: Setting key
        value: Setting value (can be None)

    Returns:
        The created or updated Setting object
    """
    result = await db_session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()

    if setting:
        setting.value = value
    else:
        setting = Setting(key=key, value=value)
        db_session.add(setting)

    await db_session.commit()
    await db_session.refresh(setting)
    return setting


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_positive_int(value: str | None, default: int) -> int:
    if value is None or not value.strip().isdigit():
        return default
    parsed = int(value)
    return parsed if parsed > 0 else default


async def load_messaging_settings(
    db_session: AsyncSession,
    defaults: MessagingConfig | None = None,
) -> MessagingSettings:
    """Build the messaging settings, stored values overriding app.yaml defaults.

    Unparseable stored values fall back to the default rather than failing
    the request.
    """
    defaults = defaults or MessagingConfig()
    stored = await get_settings(db_session, [MESSAGING_ENABLED_KEY, MAX_MESSAGE_LENGTH_KEY])

    return MessagingSettings(
        messaging_enabled=_parse_bool(stored.get(MESSAGING_ENABLED_KEY), defaults.enabled),
        max_message_length=_parse_positive_int(
            stored.get(MAX_MESSAGE_LENGTH_KEY), defaults.max_message_length
        ),
    )


async def set_messaging_enabled(db_session: AsyncSession, enabled: bool) -> None:
    await set_setting(db_session, MESSAGING_ENABLED_KEY, "1" if enabled else "0")


async def set_max_message_length(db_session: AsyncSession, length: int) -> None:
    if length <= 0:
        raise ValueError("max_message_length must be positive")
    await set_setting(db_session, MAX_MESSAGE_LENGTH_KEY, str(length))
