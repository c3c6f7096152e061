"""SQLAlchemy repository for JSON settings documents."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..tables import SettingRow


class SettingsRepository:
    """One row per key; the value is replaced wholesale on put()."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, key: str) -> Optional[dict[str, Any]]:
        row = self._session.get(SettingRow, key)
        return dict(row.value) if row else None

    def put(self, key: str, value: dict[str, Any]) -> None:
        row = self._session.get(SettingRow, key)
        if row is None:
            self._session.add(SettingRow(key=key, value=dict(value)))
        else:
            row.value = dict(value)
            row.updated_at = datetime.now(timezone.utc)
        self._session.flush()
