"""
Data models for the club digest pipeline.

- Article: scraped news item; only title/body feed the token budget.
- Bullet: one summary point with a pending/accepted/rejected decision.
- Summary: mood sentence plus ordered bullets for one fetch.
- Fetch: one pipeline run, the unit of publication.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from typing import List, Optional


@dataclass(frozen=True)
class Article:
    title: str
    body: str
    url: str = ""
    source: str = ""
    author: str = ""
    published: Optional[datetime.datetime] = None
    image: str = ""


@dataclass(frozen=True)
class Bullet:
    """A summary point.

    ``accepted`` is ``None`` until the novelty filter has judged the bullet;
    ``True``/``False`` are final for the run that produced them.
    """

    text: str
    accepted: Optional[bool] = None

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text:
            raise ValueError("Bullet text must be a non-empty string")

    def pending(self) -> "Bullet":
        """Return a clone of this bullet queued for re-evaluation."""
        return replace(self, accepted=None)

    def decided(self, accepted: bool) -> "Bullet":
        return replace(self, accepted=bool(accepted))


@dataclass(frozen=True)
class Summary:
    mood: str
    items: List[Bullet] = field(default_factory=list)
    date: datetime.date = field(default_factory=datetime.date.today)

    def with_items(self, items: List[Bullet]) -> "Summary":
        return replace(self, items=list(items))

    def accepted_items(self) -> List[Bullet]:
        return [b for b in self.items if b.accepted is True]

    def rejected_items(self) -> List[Bullet]:
        return [b for b in self.items if b.accepted is False]


@dataclass(frozen=True)
class Fetch:
    id: int
    generated_at: str
    sent: bool = False


__all__ = ["Article", "Bullet", "Summary", "Fetch"]
