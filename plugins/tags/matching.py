from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Any

from warden.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class Tag:
    name: str
    pattern: str
    response: str
    is_regex: bool = False
    created_by: int | None = None
    usage_count: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tag:
        return cls(
            name=str(data["name"]),
            pattern=str(data["pattern"]),
            response=str(data["response"]),
            is_regex=bool(data.get("is_regex", False)),
            created_by=data.get("created_by"),
            usage_count=int(data.get("usage_count", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def matches(self, content: str) -> bool:
        """Raises ``re.error`` for an invalid regex pattern."""
        if self.is_regex:
            return re.search(self.pattern, content, re.IGNORECASE) is not None
        return self.pattern.lower() in content.lower()


def validate_pattern(pattern: str) -> str | None:
    try:
        re.compile(pattern)
    except re.error as exc:
        return str(exc)
    return None


def find_match(tags: Iterable[Tag], content: str) -> Tag | None:
    """First tag matching ``content``, in stored order."""
    text = content.strip()
    for tag in tags:
        try:
            if tag.matches(text):
                return tag
        except re.error as exc:
            logger.warning("tags.invalid_regex", tag=tag.name, error=str(exc))
    return None
