"""Settings API routes: read and update configuration."""

from typing import Any

from fastapi import APIRouter

from verse_copilot.services.config_service import ConfigService

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])

_config_service = ConfigService()


def set_config_service(service: ConfigService) -> None:
    """Set the ConfigService instance."""
    global _config_service
    _config_service = service


@router.get("")
async def get_settings() -> dict[str, Any]:
    """Get current application settings."""
    return _config_service.get_settings()


@router.put("")
async def update_settings(updates: dict[str, Any]) -> dict[str, Any]:
    """Update settings; an active completion is cancelled."""
    return _config_service.update_settings(updates)


@router.post("/test-connection")
async def test_connection() -> dict[str, Any]:
    """Test the completion endpoint connection."""
    return _config_service.test_connection()
