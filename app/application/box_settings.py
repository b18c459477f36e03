"""
Settings service: the business-targets singleton.

Read → resolve → write runs in one session transaction. The row is locked on
read (FOR UPDATE; ignored by SQLite) and carries a version_id, so a stale
writer gets SettingsConflictError instead of silently overwriting.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.domain.errors import PersistenceError, SettingsConflictError, SettingsNotInitialized
from app.domain.settings_cascade import (
    ALLOWED_FIELDS, DEFAULT_SETTINGS, FieldSource, SettingsResolution, resolve,
)
from app.infrastructure.db.models import BoxControlSettings, SETTINGS_ROW_ID

logger = logging.getLogger(__name__)


def settings_to_dict(row: BoxControlSettings) -> dict[str, Any]:
    """Plain-data snapshot of the row (resolver input, API output)."""
    data = {name: getattr(row, name) for name in ALLOWED_FIELDS}
    data["version_id"] = row.version_id
    data["updated_at"] = row.updated_at
    return data


class SettingsService:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get_settings(self) -> BoxControlSettings:
        s = self._db.get(BoxControlSettings, SETTINGS_ROW_ID)
        if s is None:
            raise SettingsNotInitialized("Settings row has not been created yet")
        return s

    def get_or_create_settings(self) -> BoxControlSettings:
        s = self._db.get(BoxControlSettings, SETTINGS_ROW_ID)
        if s is not None:
            return s
        s = BoxControlSettings(id=SETTINGS_ROW_ID, **DEFAULT_SETTINGS)
        s.updated_at = datetime.now(tz=timezone.utc)
        self._db.add(s)
        try:
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            # Another request may have created the row in the meantime
            existing = self._db.get(BoxControlSettings, SETTINGS_ROW_ID)
            if existing is not None:
                return existing
            raise PersistenceError(f"Could not create settings: {exc}") from exc
        logger.info("Settings row created with defaults")
        return s

    def preview(self, requested: Mapping[str, Any]) -> SettingsResolution:
        """
        Resolve a change without writing it.

        Raises:
            SettingsNotInitialized: the settings row is missing
            SettingsValidationError: invalid change
        """
        return resolve(settings_to_dict(self.get_settings()), requested)

    def update_settings(
        self,
        requested: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> BoxControlSettings:
        """
        Apply a settings change through the cascade resolver.

        Args:
            requested: field -> value (allow-listed settings fields only)
            expected_version: version_id the caller last saw; None skips the check

        Returns:
            The updated row (unchanged row when nothing was requested)

        Raises:
            SettingsValidationError: invalid change, nothing written
            SettingsConflictError: row changed since the caller read it
            PersistenceError: the write failed
        """
        self.get_or_create_settings()
        s = (
            self._db.query(BoxControlSettings)
            .filter(BoxControlSettings.id == SETTINGS_ROW_ID)
            .with_for_update()
            .populate_existing()
            .one()
        )

        if expected_version is not None and s.version_id != expected_version:
            self._db.rollback()
            logger.warning(
                "Settings update rejected: expected version %s, found %s",
                expected_version, s.version_id,
            )
            raise SettingsConflictError(
                f"Settings were changed by someone else (version {s.version_id}, expected {expected_version})"
            )

        try:
            resolution = resolve(settings_to_dict(s), requested)
        except ValueError:
            self._db.rollback()
            raise

        if resolution.is_noop:
            self._db.rollback()
            return s

        for name, value in resolution.changes.items():
            setattr(s, name, value)
        s.updated_at = datetime.now(tz=timezone.utc)

        try:
            self._db.commit()
        except StaleDataError as exc:
            self._db.rollback()
            logger.warning("Settings update lost a concurrent write race")
            raise SettingsConflictError("Settings were changed by someone else, reload and retry") from exc
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.exception("Settings update failed")
            raise PersistenceError(f"Error updating settings: {exc}") from exc

        logger.info(
            "Settings updated to version %d: explicit=%s derived=%s",
            s.version_id,
            resolution.fields_with_source(FieldSource.EXPLICIT),
            resolution.fields_with_source(FieldSource.DERIVED),
        )
        return s
