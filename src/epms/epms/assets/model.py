from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Asset:
    asset_id: int
    asset_tag: str
    name: str
    status: str
