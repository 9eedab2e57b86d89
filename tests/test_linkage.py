"""Tests for the LinkageManager."""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from ledger_engine.expansion import InstallmentSplitter, LinkageManager
from ledger_engine.models.entry import LedgerEntry


def _group(count: int = 3) -> list[LedgerEntry]:
    base = LedgerEntry(description="TV", amount=Decimal("900.00"), date=date(2024, 4, 1))
    entries = InstallmentSplitter(60).split(base, count)
    parent = entries[0].model_copy(update={"id": uuid4()})
    children = [e.model_copy(update={"id": uuid4()}) for e in entries[1:]]
    return [parent, *LinkageManager.link(parent, children)]


class TestLink:
    """Tests for LinkageManager.link."""

    def test_children_reference_parent(self):
        parent, *children = _group()
        assert all(child.parent_ref == parent.id for child in children)
        assert parent.parent_ref is None

    def test_link_requires_persisted_parent(self):
        parent = LedgerEntry(description="TV", amount=Decimal("1"), date=date(2024, 1, 1))
        with pytest.raises(ValueError, match="no id"):
            LinkageManager.link(parent, [])

    def test_link_returns_copies(self):
        parent = LedgerEntry(id=uuid4(), description="A", amount=Decimal("1"), date=date(2024, 1, 1))
        child = LedgerEntry(description="A", amount=Decimal("1"), date=date(2024, 2, 1))
        linked = LinkageManager.link(parent, [child])
        assert linked[0].parent_ref == parent.id
        assert child.parent_ref is None


class TestCheckIntegrity:
    """Tests for LinkageManager.check_integrity."""

    def test_well_formed_group(self):
        assert LinkageManager.check_integrity(_group(6)) == []

    def test_empty_group(self):
        assert LinkageManager.check_integrity([]) == []

    def test_wrong_parent_reference(self):
        entries = _group()
        entries[2] = entries[2].model_copy(update={"parent_ref": uuid4()})
        problems = LinkageManager.check_integrity(entries)
        assert len(problems) == 1
        assert "expected" in problems[0]

    def test_out_of_order_dates(self):
        entries = _group()
        entries[1], entries[2] = entries[2], entries[1]
        problems = LinkageManager.check_integrity(entries)
        assert any("does not follow" in p for p in problems)
        assert any("installment indexes" in p for p in problems)

    def test_missing_installment(self):
        entries = _group(4)
        del entries[2]
        problems = LinkageManager.check_integrity(entries)
        assert problems == ["installment indexes [1, 2, 4], expected [1, 2, 3, 4]"]


class TestFindGroup:
    """Tests for group lookups against storage."""

    @pytest.mark.asyncio
    async def test_find_group_orders_parent_first(self, gateway):
        parent, *children = _group()
        await gateway.insert_many(list(reversed(children)))
        await gateway.insert_one(parent)

        members = await LinkageManager(gateway).find_group(parent.id)
        assert [e.id for e in members] == [parent.id, *(c.id for c in children)]

    @pytest.mark.asyncio
    async def test_find_unknown_group(self, gateway):
        assert await LinkageManager(gateway).find_group(uuid4()) == []

    @pytest.mark.asyncio
    async def test_group_of_unknown_entry(self, gateway):
        assert await LinkageManager(gateway).group_of(uuid4()) == []

    @pytest.mark.asyncio
    async def test_find_group_requires_gateway(self):
        with pytest.raises(RuntimeError):
            await LinkageManager().find_group(uuid4())
