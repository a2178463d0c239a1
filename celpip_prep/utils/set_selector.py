from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from celpip_prep.schemas.practice_set import PracticeSet
from celpip_prep.utils.set_store import get_set


def build_runtime_set(practice_set: PracticeSet, section_ids: Optional[Iterable[str]] = None) -> PracticeSet:
    """
    The set a candidate actually sits: the chosen sections, in authored order.

    No selection means the whole set. Raises ValueError for unknown ids or
    a selection that leaves nothing to take.
    """
    if section_ids is None:
        return practice_set

    wanted = set(section_ids)
    known = {s.id for s in practice_set.sections}
    unknown = wanted - known
    if unknown:
        raise ValueError(f"Unknown section(s) for set '{practice_set.id}': {', '.join(sorted(unknown))}")
    if not wanted:
        raise ValueError("Select at least one section")

    chosen = [s for s in practice_set.sections if s.id in wanted]
    return practice_set.model_copy(update={"sections": chosen})


def select_set(db: Session, set_id: str, section_ids: Optional[Iterable[str]] = None) -> PracticeSet:
    """
    Loads a set for delivery. Only sets that have at least one section can be
    taken.

    Raises:
      LookupError when the set does not exist.
      ValueError for a bad section choice or an empty set.
    """
    practice_set = get_set(db, set_id)
    if practice_set is None:
        raise LookupError(f"Practice set '{set_id}' not found")
    runtime = build_runtime_set(practice_set, section_ids)
    if not runtime.sections:
        raise ValueError(f"Practice set '{set_id}' has no sections")
    return runtime
