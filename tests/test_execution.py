"""Tests for the approval gate, command generation and execution engine."""

from unittest.mock import Mock

import pytest
from hypothesis import given, strategies as st

from gcp_waste_agent.services.execution import ApprovalGate, ExecutionEngine, generate_cli_command
from gcp_waste_agent.services.models import ActionDetails, ActionStatus, ActionType, PlannedAction


def make_action(action_id="a1", action_type=ActionType.STOP_VM, target="web-01", zone="us-central1-a",
                status=ActionStatus.PENDING, details=None):
    return PlannedAction(
        id=action_id,
        type=action_type,
        target=target,
        zone=zone,
        confidence=90,
        reasoning="Idle",
        status=status,
        details=details,
    )


decisions = st.lists(st.sampled_from(['approve', 'reject']), max_size=10)


class TestApprovalGate:

    def test_reject_then_approve_leaves_approved(self):
        action = make_action()
        gate = ApprovalGate([action])

        gate.reject("a1")
        gate.approve("a1")

        assert action.status == ActionStatus.APPROVED

    def test_unknown_identity_is_noop(self):
        action = make_action()
        gate = ApprovalGate([action])

        assert gate.approve("missing") is False
        assert gate.reject("missing") is False
        assert action.status == ActionStatus.PENDING

    def test_executed_action_cannot_be_reopened(self):
        action = make_action(status=ActionStatus.EXECUTED)
        gate = ApprovalGate([action])

        assert gate.reject("a1") is False
        assert gate.approve("a1") is False
        assert action.status == ActionStatus.EXECUTED

    @given(sequence=decisions)
    def test_last_decision_wins(self, sequence):
        """
        Property: after any sequence of decisions, the status reflects the last one.
        """
        action = make_action()
        gate = ApprovalGate([action])
        for decision in sequence:
            getattr(gate, decision)("a1")

        expected = {
            'approve': ActionStatus.APPROVED,
            'reject': ActionStatus.REJECTED,
        }.get(sequence[-1] if sequence else None, ActionStatus.PENDING)
        assert action.status == expected

    def test_partitions(self):
        actions = [make_action("a1"), make_action("a2"), make_action("a3")]
        gate = ApprovalGate(actions)
        gate.approve("a1")
        gate.reject("a2")

        assert [a.id for a in gate.approved()] == ["a1"]
        assert [a.id for a in gate.pending()] == ["a3"]


class TestCommandGeneration:

    def test_stop_vm(self):
        command = generate_cli_command(make_action(), project_id="acme-prod-123")

        assert "stop web-01 --zone=us-central1-a" in command
        assert "--quiet" in command
        assert "--project=acme-prod-123" in command

    def test_project_placeholder_when_unscoped(self):
        assert "--project=$PROJECT_ID" in generate_cli_command(make_action())

    def test_rightsize_is_stop_retype_start(self):
        action = make_action(action_type=ActionType.RIGHTSIZE_VM,
                             details=ActionDetails(from_type="n1-standard-4", to_type="e2-small"))
        steps = generate_cli_command(action).split(" && \\\n")

        assert len(steps) == 3
        assert "instances stop web-01" in steps[0]
        assert "set-machine-type web-01 --machine-type=e2-small --zone=us-central1-a" in steps[1]
        assert "instances start web-01" in steps[2]

    def test_rightsize_defaults_target_shape(self):
        action = make_action(action_type=ActionType.RIGHTSIZE_VM)
        assert "--machine-type=e2-medium" in generate_cli_command(action)

    @pytest.mark.parametrize("action_type, expected", [
        (ActionType.DELETE_DISK, "gcloud compute disks delete backup-1 --zone=us-central1-a"),
        (ActionType.DELETE_RUN, "gcloud run services delete backup-1 --region=us-central1-a"),
        (ActionType.DELETE_SQL, "gcloud sql instances delete backup-1 --quiet"),
    ])
    def test_delete_commands(self, action_type, expected):
        command = generate_cli_command(make_action(action_type=action_type, target="backup-1"))
        assert command.startswith(expected)
        assert "--quiet" in command

    def test_unknown_type_is_comment(self):
        action = make_action()
        action.type = "SNAPSHOT_DISK"
        assert generate_cli_command(action) == "# Unknown action: SNAPSHOT_DISK"

    def test_commands_are_deterministic(self):
        action = make_action(action_type=ActionType.DELETE_DISK)
        assert generate_cli_command(action, "p-123456") == generate_cli_command(action, "p-123456")


class TestExecutionEngine:

    def test_only_approved_actions_execute_in_order(self):
        actions = [
            make_action("a1", target="web-01", status=ActionStatus.APPROVED),
            make_action("a2", target="web-02", status=ActionStatus.REJECTED),
            make_action("a3", target="web-03", status=ActionStatus.PENDING),
            make_action("a4", target="web-04", status=ActionStatus.APPROVED),
        ]
        sleep = Mock()
        seen = []

        records = ExecutionEngine(sleep=sleep).execute(actions, project_id="acme-prod-123", on_executed=seen.append)

        assert [r.target for r in records] == ["web-01", "web-04"]
        assert seen == records
        assert [a.status for a in actions] == [
            ActionStatus.EXECUTED, ActionStatus.REJECTED, ActionStatus.PENDING, ActionStatus.EXECUTED,
        ]
        assert sleep.call_count == 2
        assert all(r.simulated for r in records)

    def test_real_mode_skips_delay(self):
        sleep = Mock()
        action = make_action(status=ActionStatus.APPROVED)

        records = ExecutionEngine(mode='real', sleep=sleep).execute([action])

        sleep.assert_not_called()
        assert records[0].simulated is False
        assert "stop web-01 --zone=us-central1-a" in records[0].command

    def test_invalid_mode_rejected(self):
        with pytest.raises(ValueError):
            ExecutionEngine(mode='yolo')

    def test_mark_executed_requires_approval(self):
        with pytest.raises(ValueError):
            make_action().mark_executed()
