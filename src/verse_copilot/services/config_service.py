"""Configuration service for the HTTP API.

Reads the in-memory AppConfig and writes changes back to the .env file so the
CLI picks them up too. Listeners are told about every applied change, which
is how a running orchestrator learns its settings moved.
"""

import os
import shutil
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
from pydantic.fields import FieldInfo

from verse_copilot.config import SECTIONS, AppConfig, get_config, set_config

logger = structlog.get_logger()

MASK = "••••"


class ConfigService:
    """Read and update application configuration.

    Sections and env prefixes come from the SECTIONS registry and the
    Pydantic models, so a new setting only needs a new model field.
    """

    _MAX_BACKUPS = 3

    def __init__(
        self,
        env_file: Optional[Path] = None,
        on_change: Optional[Callable[[AppConfig], None]] = None,
    ) -> None:
        self._env_file = env_file or Path(".env")
        self._listeners: list[Callable[[AppConfig], None]] = []
        if on_change is not None:
            self._listeners.append(on_change)

    def add_listener(self, callback: Callable[[AppConfig], None]) -> None:
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_settings(self) -> dict[str, Any]:
        """Current configuration as a nested dict, API keys masked.

        Includes ``_descriptions`` taken from the Pydantic field metadata.
        """
        config = get_config()

        result: dict[str, Any] = {"project_dir": str(config.project_dir)}
        descriptions: dict[str, dict[str, str]] = {}
        for section_key, attr_name in SECTIONS.items():
            sub = getattr(config, attr_name)
            data = sub.model_dump()
            if "api_key" in data:
                data["api_key"] = self._mask_key(data["api_key"])
            result[section_key] = data
            descriptions[section_key] = {
                name: info.description
                for name, info in type(sub).model_fields.items()
                if info.description
            }

        result["_descriptions"] = descriptions
        return result

    def update_settings(self, updates: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update, persist it and notify listeners.

        Values equal to the field default are commented out in .env rather
        than written. Masked API keys are treated as unchanged.
        """
        defaults = self._get_defaults()
        prefix_map = self._get_prefix_map()

        write_vars: dict[str, str] = {}
        comment_vars: set[str] = set()

        if "project_dir" in updates:
            write_vars["PROJECT_DIR"] = str(updates["project_dir"])

        for section, values in updates.items():
            if not isinstance(values, dict):
                continue
            if section.startswith("_") or section not in prefix_map:
                continue
            prefix = prefix_map[section]
            section_defaults = defaults.get(section, {})

            for key, value in values.items():
                if key == "api_key" and isinstance(value, str) and MASK in value:
                    continue
                env_name = f"{prefix}{key.upper()}"
                if self._is_default(value, section_defaults.get(key)):
                    comment_vars.add(env_name)
                else:
                    write_vars[env_name] = str(value)

        self._update_env_file(write_vars, comment_vars)

        for name, value in write_vars.items():
            os.environ[name] = value
        for name in comment_vars:
            os.environ.pop(name, None)

        previous = get_config()
        config = AppConfig.load(self._env_file)
        if "project_dir" not in updates:
            # Keep a --project-dir override that the environment does not carry
            config = config.model_copy(update={"project_dir": previous.project_dir})
        set_config(config)
        logger.info("settings_updated", written=sorted(write_vars), reset=sorted(comment_vars))
        for listener in self._listeners:
            listener(config)

        return self.get_settings()

    def test_connection(self) -> dict[str, Any]:
        """Probe the completion endpoint's /models listing.

        Returns:
            Dict with 'success' bool and 'message' string.
        """
        config = get_config()
        if not config.llm.api_key:
            return {"success": False, "message": "API key is not configured"}

        import httpx

        try:
            response = httpx.get(
                f"{config.llm.base_url.rstrip('/')}/models",
                headers={"Authorization": f"Bearer {config.llm.api_key}"},
                timeout=10,
            )
        except httpx.HTTPError as e:
            return {"success": False, "message": str(e)}
        if response.status_code == 200:
            return {"success": True, "message": "Connection successful"}
        return {"success": False, "message": f"API returned {response.status_code}"}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_prefix_map(self) -> dict[str, str]:
        """Section -> env_prefix, read from the Pydantic models."""
        config = get_config()
        return {
            section_key: getattr(config, attr_name).model_config.get("env_prefix", "")
            for section_key, attr_name in SECTIONS.items()
        }

    def _get_defaults(self) -> dict[str, dict[str, Any]]:
        """Field defaults as declared on the models, not as loaded from env."""
        config = get_config()
        result: dict[str, dict[str, Any]] = {}
        for section_key, attr_name in SECTIONS.items():
            sub = getattr(config, attr_name)
            result[section_key] = {
                name: info.default
                for name, info in type(sub).model_fields.items()
                if isinstance(info, FieldInfo) and info.default is not None
            }
        return result

    @staticmethod
    def _is_default(value: Any, default: Any) -> bool:
        if default is None:
            return False
        if isinstance(default, bool):
            if isinstance(value, bool):
                return value == default
            return str(value).lower() == str(default).lower()
        if isinstance(default, (int, float)):
            try:
                return float(value) == float(default)
            except (ValueError, TypeError):
                return False
        return str(value) == str(default)

    @staticmethod
    def _mask_key(key: str) -> str:
        """Empty stays empty so the client can tell 'unset' from 'hidden'."""
        if not key:
            return ""
        if len(key) < 8:
            return MASK * 2
        return key[:4] + MASK + key[-4:]

    # ------------------------------------------------------------------
    # .env file management
    # ------------------------------------------------------------------

    def _update_env_file(self, write_vars: dict[str, str], comment_vars: set[str]) -> None:
        """Rewrite .env in place, keeping unrelated lines and comments.

        A commented-out key that gets a non-default value is uncommented.
        """
        self._backup_env_file()

        lines: list[str] = []
        handled: set[str] = set()

        if self._env_file.exists():
            for line in self._env_file.read_text(encoding="utf-8").splitlines():
                stripped = line.strip()

                if stripped and not stripped.startswith("#") and "=" in stripped:
                    key = stripped.split("=", 1)[0].strip()
                    if key in write_vars:
                        lines.append(f"{key}={write_vars[key]}")
                        handled.add(key)
                        continue
                    if key in comment_vars:
                        lines.append(f"# {stripped}")
                        handled.add(key)
                        continue

                if stripped.startswith("#") and "=" in stripped:
                    key = stripped.lstrip("#").strip().split("=", 1)[0].strip()
                    if key in write_vars and key not in handled:
                        lines.append(f"{key}={write_vars[key]}")
                        handled.add(key)
                        continue

                lines.append(line)

        for key, value in write_vars.items():
            if key not in handled:
                lines.append(f"{key}={value}")

        self._env_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

    def _backup_env_file(self) -> None:
        """Rotate .env.bak.1 (newest) .. .env.bak.N (oldest) before writing."""
        if not self._env_file.exists():
            return

        for i in range(self._MAX_BACKUPS, 1, -1):
            older = self._env_file.parent / f"{self._env_file.name}.bak.{i}"
            newer = self._env_file.parent / f"{self._env_file.name}.bak.{i - 1}"
            if newer.exists():
                shutil.copy2(newer, older)

        shutil.copy2(self._env_file, self._env_file.parent / f"{self._env_file.name}.bak.1")
