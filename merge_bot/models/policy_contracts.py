"""Pydantic contracts for per-repository autoapprove/automerge policies."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


class Policy(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    repository: str = Field(min_length=1)
    autoapprove: bool = False
    automerge: bool = False


@dataclass(frozen=True)
class PolicyTable:
    """Ordered, read-only policy entries shared by concurrent workflow runs."""

    entries: tuple[Policy, ...] = ()

    @classmethod
    def from_entries(cls, entries: Iterable[Policy]) -> "PolicyTable":
        return cls(entries=tuple(entries))

    def matching(self, repository: str) -> Iterator[Policy]:
        # Every entry with the name is yielded, duplicates included, in table order.
        for policy in self.entries:
            if policy.repository == repository:
                yield policy

    def __len__(self) -> int:
        return len(self.entries)

    def as_rows(self) -> list[dict[str, object]]:
        return [policy.model_dump() for policy in self.entries]
