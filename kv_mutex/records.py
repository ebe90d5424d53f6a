from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class LockRecord:
    owner: str
    locked: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "locked": self.locked,
        }


def owner_of(value: Any) -> Optional[str]:
    # Stores hand back whatever was written; only mappings carry an owner.
    if not isinstance(value, Mapping):
        return None
    owner = value.get("owner")
    if owner is None:
        return None
    return str(owner)
