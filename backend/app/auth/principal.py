from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """The identity making a request, as reported by the identity provider.

    Passed explicitly into every authorization call; there is no ambient
    "current user".
    """

    id: str | None
    is_authenticated: bool
    reason: str | None = None

    @classmethod
    def authenticated(cls, principal_id: str) -> "Principal":
        if not principal_id:
            raise ValueError("Authenticated principal requires an id")
        return cls(id=principal_id, is_authenticated=True)

    @classmethod
    def anonymous(cls, reason: str | None = None) -> "Principal":
        return cls(id=None, is_authenticated=False, reason=reason)
