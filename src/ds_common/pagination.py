"""Keyset cursor helpers shared by the list endpoints.

Cursor format (UUID PKs are not sequential, so created_at leads):
  {"ts": "<created_at ISO>", "id": "<row id>"}
  Encoded as Base64 JSON string.
"""

import base64
import json
from datetime import datetime


def cursor_encode(created_at: datetime, row_id: str) -> str:
    payload = {"ts": created_at.isoformat(), "id": row_id}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def cursor_decode(cursor: str | None) -> tuple[str | None, str | None]:
    """Decode cursor -> (ts_iso, id), or (None, None) on a malformed cursor."""
    if cursor is None:
        return None, None
    try:
        data = json.loads(base64.b64decode(cursor.encode()).decode())
        return data["ts"], data["id"]
    except Exception:
        return None, None
