# errors.py — Domain error types with SDG-DOMAIN-NUMBER codes
import json
from typing import Any, Dict, Iterable, List, Optional

# ============================================================
# ERROR CODE CATALOGUE
# SDG-{DOMAIN}-{NUMBER}
# Domains: DB, TASK, BADGE, SYS
# ============================================================

ERROR_CATALOGUE = {
    "SDG-DB-002": {"message": "Referenced record does not exist", "severity": "warning", "http_status": 422},
    "SDG-DB-003": {"message": "Record already exists", "severity": "info", "http_status": 409},
    "SDG-TASK-001": {"message": "Status transition not permitted", "severity": "info", "http_status": 409},
    "SDG-TASK-002": {"message": "Task was modified concurrently", "severity": "warning", "http_status": 409},
    "SDG-BADGE-001": {"message": "Badge is inactive", "severity": "info", "http_status": 409},
    "SDG-SYS-001": {"message": "Internal server error", "severity": "critical", "http_status": 500},
    "SDG-SYS-004": {"message": "Request validation failed", "severity": "info", "http_status": 422},
}


class DomainError(Exception):
    """Base class for errors raised by the core; carries a catalogue code"""

    code = "SDG-SYS-001"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or ERROR_CATALOGUE[self.code]["message"]
        super().__init__(self.detail)

    @property
    def http_status(self) -> int:
        return ERROR_CATALOGUE[self.code]["http_status"]

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ReferentialIntegrityError(DomainError):
    """A write referenced a parent row that does not exist"""

    code = "SDG-DB-002"

    def __init__(self, entity: str, entity_id: Optional[str]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' does not exist")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["entity"] = self.entity
        data["entity_id"] = self.entity_id
        return data


class DuplicateRecordError(DomainError):
    code = "SDG-DB-003"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} already exists")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["entity"] = self.entity
        return data


class InvalidTransitionError(DomainError):
    code = "SDG-TASK-001"

    def __init__(self, old_status: str, new_status: str):
        self.old_status = old_status
        self.new_status = new_status
        super().__init__(f"Cannot move task from {old_status} to {new_status}")


class ConcurrentUpdateError(DomainError):
    """A compare-and-set write kept losing to other writers"""

    code = "SDG-TASK-002"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' kept changing while being updated; retry the request")


class BadgeInactiveError(DomainError):
    code = "SDG-BADGE-001"

    def __init__(self, badge_id: str):
        self.badge_id = badge_id
        super().__init__(f"Badge '{badge_id}' is inactive and cannot be awarded")


def error_envelope(code: str, detail: Any, request_id: Optional[str], **extra) -> Dict[str, Any]:
    """Response body shared by every error handler"""
    body = {"detail": detail, "code": code}
    body.update(extra)
    body["request_id"] = request_id
    return body


def validation_details(errors: Iterable[dict]) -> List[Dict[str, Any]]:
    """Reduce pydantic error dicts to type/loc/msg/input, stringifying inputs json can't encode"""
    details = []
    for err in errors:
        item = {
            "type": str(err.get("type", "unknown")),
            "loc": list(err.get("loc", [])),
            "msg": str(err.get("msg", "")),
        }
        if "input" in err:
            value = err["input"]
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            item["input"] = value
        details.append(item)
    return details
