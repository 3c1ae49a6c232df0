import json
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Session:
    """
    Server-side attribute storage identified by a cookie.

    A session is readable while now - last_access <= timeout. Timestamps are
    epoch seconds; timeout is fixed when the session is created.
    """

    id: str
    timeout: float
    created_at: float
    last_access: float
    attributes: Dict[str, Any] = field(default_factory=dict)
    is_new: bool = field(default=False, compare=False)
    invalidated: bool = field(default=False, compare=False)

    @classmethod
    def new(cls, timeout: float, now: float) -> "Session":
        """Create a session with a fresh random identifier."""
        return cls(
            id=secrets.token_urlsafe(24),
            timeout=timeout,
            created_at=now,
            last_access=now,
            is_new=True,
        )

    def is_expired(self, now: float) -> bool:
        return now - self.last_access > self.timeout

    def expires_at(self) -> float:
        return self.last_access + self.timeout

    def get_attr(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def set_attr(self, name: str, value: Any) -> None:
        self.attributes[name] = value

    def del_attr(self, name: str) -> None:
        self.attributes.pop(name, None)

    def attr_names(self) -> List[str]:
        return list(self.attributes)

    def invalidate(self) -> None:
        """Mark the session for removal when the request scope ends."""
        self.invalidated = True

    def to_json(self) -> str:
        return json.dumps(
            {
                "id": self.id,
                "timeout": self.timeout,
                "created_at": self.created_at,
                "last_access": self.last_access,
                "attributes": self.attributes,
            }
        )

    @classmethod
    def from_json(cls, data: str) -> "Session":
        record = json.loads(data)
        return cls(
            id=record["id"],
            timeout=float(record["timeout"]),
            created_at=float(record["created_at"]),
            last_access=float(record["last_access"]),
            attributes=record.get("attributes") or {},
        )
