from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured representation of an audit event.

    Keeps the payload to identifiers and counts; transcript text and
    summaries never go into the audit log.
    """

    timestamp: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log a structured audit event as one JSON line.

        - `action`: high-level verb, e.g. "create_session", "receive_webhook".
        - `resource_type`: coarse type, e.g. "recording_session".
        - `resource_id`: stable identifier when available.
        - `extra`: optional small dict of metadata (statuses, counts, types).
        """

        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            extra=extra,
        )

        try:
            logger.info(json.dumps(asdict(event)))
        except TypeError:
            # Something in extra is not JSON serializable; drop it rather than
            # the whole event.
            safe_event = asdict(event)
            safe_event["extra"] = None
            logger.info(json.dumps(safe_event))


audit_service = AuditService()
