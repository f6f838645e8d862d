"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class NewAccount:
    """Row values for an account insert, including its initial preferences."""

    email: str
    password_hash: str
    display_name: str | None = None
    preferences: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CreateAccountInput:
    """Inputs for an account created on behalf of a user by another caller."""

    email: str
    password: str
    display_name: str | None = None
    email_enabled: bool | None = None
    push_enabled: bool | None = None


@dataclass(slots=True)
class RegisterInput:
    """Self-service registration inputs."""

    email: str
    password: str
    display_name: str | None = None


@dataclass(slots=True)
class PageMeta:
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PageMeta":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


@dataclass(slots=True)
class Page(Generic[T]):
    """Offset/limit page in the shape ``{data, meta}``."""

    data: list[T]
    meta: PageMeta
