"""
Linkage Manager

Keeps the parent/child identity of a generated group so that callers
can later find every entry that came from one submission.

The first persisted entry's id is the group identity. Every other
entry carries it as parent_ref. Cascade policy (whether deleting the
parent should delete its children) belongs to the caller; this module
only makes the group findable.
"""

from typing import Optional
from uuid import UUID

from ledger_engine.models.entry import LedgerEntry
from ledger_engine.services.storage import LedgerGateway


class LinkageManager:
    """Stamps and resolves group linkage."""

    def __init__(self, gateway: Optional[LedgerGateway] = None):
        self._gateway = gateway

    @staticmethod
    def link(parent: LedgerEntry, children: list[LedgerEntry]) -> list[LedgerEntry]:
        """
        Point every child at the persisted parent.

        Raises:
            ValueError: If the parent has not been persisted yet.
        """
        if parent.id is None:
            raise ValueError("Cannot link to a parent that has no id yet")

        return [
            child.model_copy(update={"parent_ref": parent.id})
            for child in children
        ]

    async def find_group(self, group_id: UUID) -> list[LedgerEntry]:
        """
        All entries whose id or parent_ref equals `group_id`.

        The parent comes first, children follow in date order.
        """
        if self._gateway is None:
            raise RuntimeError("LinkageManager has no gateway to search")

        entries = await self._gateway.find_by_group(group_id)
        return sorted(
            entries,
            key=lambda e: (e.id != group_id, e.date, _installment_index(e)),
        )

    async def group_of(self, entry_id: UUID) -> list[LedgerEntry]:
        """Resolve any member of a group to the whole group."""
        if self._gateway is None:
            raise RuntimeError("LinkageManager has no gateway to search")

        entry = await self._gateway.get_entry(entry_id)
        if entry is None:
            return []
        return await self.find_group(entry.group_id)

    @staticmethod
    def check_integrity(entries: list[LedgerEntry]) -> list[str]:
        """
        Report linkage problems in an ordered group.

        Returns an empty list for a well-formed group.
        """
        if not entries:
            return []

        problems = []
        parent, children = entries[0], entries[1:]

        if parent.id is None:
            problems.append("parent has no id")
        if parent.parent_ref is not None:
            problems.append(f"parent {parent.id} carries parent_ref {parent.parent_ref}")

        for child in children:
            if child.parent_ref != parent.id:
                problems.append(
                    f"entry {child.id} references {child.parent_ref}, expected {parent.id}"
                )

        for earlier, later in zip(entries, entries[1:]):
            if later.date <= earlier.date:
                problems.append(f"date {later.date} does not follow {earlier.date}")

        plans = [e.installment_plan for e in entries if e.installment_plan]
        if plans:
            indexes = [plan.index for plan in plans]
            expected = list(range(1, plans[0].count + 1))
            if indexes != expected:
                problems.append(f"installment indexes {indexes}, expected {expected}")

        return problems


def _installment_index(entry: LedgerEntry) -> int:
    return entry.installment_plan.index if entry.installment_plan else 0
