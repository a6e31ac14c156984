"""
Tests for control-plane data models.
"""

from __future__ import annotations

from nodepilot.models import (
    Account,
    Address,
    BlockFeeStats,
    NodeStatus,
    OpResult,
    PendingEntry,
    SweepOutcome,
    SweepResult,
)


class TestAccount:
    def test_add_address_rejects_duplicates(self):
        account = Account(name="w1")
        assert account.add_address(Address(address="a1"))
        assert not account.add_address(Address(address="a1", label="again"))
        assert len(account.addresses) == 1
        assert account.addresses[0].label is None

    def test_merge_updates_in_place_and_appends(self):
        account = Account(name="w1", addresses=[Address(address="a1", label="old", balance=5)])

        added = account.merge_addresses(
            [Address(address="a1", label="new"), Address(address="a2", balance=7)]
        )

        assert added == 1
        a1 = account.get_address("a1")
        assert a1.label == "new"
        assert a1.balance == 5
        assert account.get_address("a2").balance == 7

    def test_merge_never_clears_used_flag(self):
        account = Account(name="w1", addresses=[Address(address="a1", used=True)])
        account.merge_addresses([Address(address="a1", used=False)])
        assert account.get_address("a1").used


def test_fee_density():
    assert PendingEntry(txid="t", fee=1000, size=250).fee_density == 4.0
    assert PendingEntry(txid="t", fee=1000, size=0).fee_density == 0.0


def test_node_status_unknown_fields():
    assert NodeStatus().display() == {
        "block_height": "--",
        "mempool_size": "--",
        "peers": "--",
        "sync_status": "--",
    }
    assert NodeStatus(sync_progress=0.5).display()["sync_status"] == "50.00%"


class TestSweepResult:
    def test_lines_per_outcome(self):
        result = SweepResult(
            destination="A",
            outcomes=(
                SweepOutcome(account="B", success=True, txid="t1"),
                SweepOutcome(account="C", success=True, message="nothing to sweep"),
                SweepOutcome(account="D", success=False, message="timeout"),
            ),
        )
        assert result.ok
        assert result.lines() == [
            "B: swept (t1)",
            "C: nothing to sweep",
            "D: failed - timeout",
        ]

    def test_aborted(self):
        result = SweepResult(destination="A", error="destination address failed")
        assert not result.ok
        assert result.lines() == ["Sweep to A aborted: destination address failed"]


def test_op_result_constructors():
    assert OpResult.success(3) == OpResult(ok=True, value=3)
    assert OpResult.failure("bad") == OpResult(ok=False, error="bad")


def test_block_reward_needs_subsidy_and_fees():
    assert BlockFeeStats(total_fee=1_000, subsidy=312_500_000).reward == 312_501_000
    assert BlockFeeStats(total_fee=1_000).reward is None
