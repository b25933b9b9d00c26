from fastapi import Header, HTTPException, status

from bacenta_reminders.core.settings import settings


async def require_birthday_admin_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    """Reject requests without the configured admin key; open when no key is configured."""

    if not settings.birthday_admin_api_key:
        return

    if x_api_key != settings.birthday_admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )
