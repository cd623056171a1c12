"""Tests for the private-kudos visibility policy."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from kudos_bot.repositories.manager_repository import ManagerRepository
from kudos_bot.visibility import VisibilityPolicy


def _record(visibility="private", sender="U_SENDER", recipient="U_ALICE", label=""):
    return SimpleNamespace(
        from_user_id=sender, to_user_id=recipient, visibility=visibility, label=label
    )


@pytest.fixture
def managers(db, backend):
    return ManagerRepository(db, backend)


@pytest.fixture
async def org(managers):
    """Alice reports to Mia, who reports to the VP."""
    await managers.set_manager("U_ALICE", "U_MIA")
    await managers.set_manager("U_MIA", "U_VP")
    return managers


async def test_manager_chain(org):
    policy = VisibilityPolicy(org)
    assert await policy.manager_chain("U_ALICE") == ["U_MIA", "U_VP"]
    assert await policy.manager_chain("U_VP") == []


async def test_manager_chain_stops_on_cycle(managers):
    await managers.set_manager("U1", "U2")
    await managers.set_manager("U2", "U1")
    assert await VisibilityPolicy(managers).manager_chain("U1") == ["U2"]


async def test_manager_chain_depth_limit(managers):
    for i in range(5):
        await managers.set_manager(f"U{i}", f"U{i + 1}")
    assert await VisibilityPolicy(managers, max_depth=2).manager_chain("U0") == ["U1", "U2"]


@pytest.mark.parametrize(
    ("viewer", "allowed"),
    [
        ("U_SENDER", True),
        ("U_ALICE", True),
        ("U_MIA", True),
        ("U_VP", True),
        ("U_STRANGER", False),
        (None, False),
    ],
)
async def test_private_record_access(org, viewer, allowed):
    policy = VisibilityPolicy(org)
    assert await policy.can_view(_record(), viewer) is allowed


async def test_public_record_visible_to_anyone(org):
    policy = VisibilityPolicy(org)
    assert await policy.can_view(_record(visibility="public"), None) is True
    assert await policy.can_view(_record(visibility="public"), "U_STRANGER") is True


async def test_filter_keeps_order_and_drops_unauthorized(org):
    records = [
        _record(visibility="public", label="a"),
        _record(label="b"),
        _record(recipient="U_BOB", label="c"),
        _record(visibility="public", recipient="U_BOB", label="d"),
    ]
    policy = VisibilityPolicy(org)

    assert [r.label for r in await policy.filter(records, None)] == ["a", "d"]
    assert [r.label for r in await policy.filter(records, "U_MIA")] == ["a", "b", "d"]
    assert [r.label for r in await policy.filter(records, "U_SENDER")] == ["a", "b", "c", "d"]


async def test_enforcement_can_be_disabled(org):
    policy = VisibilityPolicy(org, enforce=False)
    assert await policy.can_view(_record(), None) is True
    assert len(await policy.filter([_record(), _record()], "U_STRANGER")) == 2


@pytest.mark.parametrize("viewer", ["U_SENDER", "U_ALICE", "U_MIA", "U_VP", "U_BOB", "U_STRANGER", None])
async def test_filter_agrees_with_can_view(org, viewer):
    records = [
        _record(visibility="public", label="a"),
        _record(label="b"),
        _record(recipient="U_BOB", label="c"),
        _record(sender="U_MIA", recipient="U_BOB", label="d"),
    ]
    policy = VisibilityPolicy(org)

    expected = [r.label for r in records if await policy.can_view(r, viewer)]
    assert [r.label for r in await policy.filter(records, viewer)] == expected


async def test_filter_looks_up_each_chain_once():
    managers = AsyncMock()
    managers.get_manager.side_effect = {"U_ALICE": "U_MIA"}.get
    records = [_record(), _record(), _record()]

    visible = await VisibilityPolicy(managers).filter(records, "U_MIA")

    assert len(visible) == 3
    # U_ALICE -> U_MIA, then U_MIA -> None.
    assert managers.get_manager.await_count == 2
