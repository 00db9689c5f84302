"""Domain entity — the persisted login state of the console user."""

from dataclasses import dataclass, field, replace
from typing import Any

ADMIN_ROLE = "ADMIN"


@dataclass(frozen=True)
class UserSession:
    user_id: int
    name: str
    email: str
    access_token: str
    role: str = "USER"
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role.upper() == ADMIN_ROLE

    def with_profile(self, profile: dict[str, Any]) -> "UserSession":
        """Merge fresh profile fields while keeping identity and token."""
        return replace(
            self,
            name=profile.get("name") or self.name,
            email=profile.get("email") or self.email,
            role=profile.get("role") or self.role,
            profile={**self.profile, **profile},
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "access_token": self.access_token,
            "role": self.role,
            "profile": self.profile,
        }

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "UserSession":
        return cls(
            user_id=int(payload["user_id"]),
            name=payload.get("name", ""),
            email=payload.get("email", ""),
            access_token=payload.get("access_token", ""),
            role=payload.get("role", "USER"),
            profile=dict(payload.get("profile") or {}),
        )
