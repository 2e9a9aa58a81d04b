"""End-to-end tests for the run orchestrator."""

from unittest.mock import Mock

import pytest

from gcp_waste_agent.core.exceptions import InventoryPermissionError, StateError
from gcp_waste_agent.services.execution import ExecutionEngine
from gcp_waste_agent.services.models import ActionStatus, ActionType
from gcp_waste_agent.services.orchestrator import PipelineStage, Run, RunOrchestrator, advance
from gcp_waste_agent.services.reasoning import OptimizationAgent, ReasoningResponse
from gcp_waste_agent.services.reporting import NO_WASTE_NOTE, ReportingAgent

from builders import FIXED_NOW, ScriptedReasoningClient, tool_call


S = PipelineStage


def build_orchestrator(snapshot=None, responses=(), fetch_error=None, listener=None):
    fetcher = Mock()
    if fetch_error is not None:
        fetcher.side_effect = fetch_error
    else:
        fetcher.return_value = snapshot

    client = ScriptedReasoningClient(responses)
    orchestrator = RunOrchestrator(
        inventory_fetcher=fetcher,
        optimization_agent=OptimizationAgent(client),
        reporting_agent=ReportingAgent(client),
        execution_engine=ExecutionEngine(sleep=Mock()),
        log_listener=listener,
        clock=lambda: FIXED_NOW,
    )
    return orchestrator, fetcher, client


def stop_web_01():
    return [
        ReasoningResponse(tool_calls=[
            tool_call("plan_shutdown_vm", "c1", instance_name="web-01", zone="us-central1-a",
                      confidence_score=95, reasoning="Idle for 7 days"),
        ]),
        ReasoningResponse(text="One shutdown proposed."),
    ]


class TestRunStateMachine:

    def test_no_waste_path(self, clean_snapshot):
        orchestrator, _, client = build_orchestrator(clean_snapshot)

        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")

        assert run.stage_history == [S.IDLE, S.INGESTING, S.IDENTIFYING, S.REPORTING, S.FINISHED]
        assert run.candidates == []
        assert NO_WASTE_NOTE in run.report
        assert client.requests == []
        assert not orchestrator.is_active()

    def test_candidates_without_actions(self, wasteful_snapshot):
        orchestrator, _, _ = build_orchestrator(wasteful_snapshot, [ReasoningResponse(text="Nothing safe to do.")])

        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")

        assert run.stage_history == [S.IDLE, S.INGESTING, S.IDENTIFYING, S.REASONING, S.REPORTING, S.FINISHED]
        assert run.candidates
        assert run.actions == []
        assert "Realized Monthly Savings: $0.00" in run.report

    def test_approved_stop_vm_is_executed(self, wasteful_snapshot):
        orchestrator, fetcher, _ = build_orchestrator(wasteful_snapshot, stop_web_01())

        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech", mode="simulated", seed=5)
        assert run.stage == S.APPROVAL
        assert orchestrator.is_active()
        fetcher.assert_called_once_with("simulated", credentials=None, file_input=None, seed=5)

        action = run.actions[0]
        assert orchestrator.approve(action.id) is True
        run = orchestrator.execute_approved()

        assert run.stage_history[-4:] == [S.APPROVAL, S.EXECUTING, S.REPORTING, S.FINISHED]
        assert action.status == ActionStatus.EXECUTED
        record = run.execution_records[0]
        assert record.action_type == ActionType.STOP_VM
        assert "stop web-01 --zone=us-central1-a" in record.command
        assert "--quiet" in record.command
        assert "--project=acme-prod-123" in record.command
        assert "Realized Monthly Savings: $112.00" in run.report
        assert run.finished_at == FIXED_NOW

    @pytest.mark.parametrize("decision", ["pending", "rejected"])
    def test_execute_requires_an_approved_action(self, wasteful_snapshot, decision):
        orchestrator, _, _ = build_orchestrator(wasteful_snapshot, stop_web_01())
        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")
        if decision == "rejected":
            orchestrator.reject(run.actions[0].id)

        with pytest.raises(StateError, match="No approved actions"):
            orchestrator.execute_approved()

        assert run.stage == S.APPROVAL
        assert S.EXECUTING not in run.stage_history
        assert run.actions[0].status != ActionStatus.EXECUTED

    def test_reset_after_rejecting_everything(self, wasteful_snapshot):
        orchestrator, _, _ = build_orchestrator(wasteful_snapshot, stop_web_01())
        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")

        orchestrator.reject(run.actions[0].id)
        orchestrator.reset()

        assert run.stage_history[-2:] == [S.APPROVAL, S.IDLE]
        assert run.execution_records == []
        assert run.actions[0].status == ActionStatus.REJECTED
        assert run.finished_at == FIXED_NOW
        assert not orchestrator.is_active()

    def test_reset_leaves_finished_run_alone(self, clean_snapshot):
        orchestrator, _, _ = build_orchestrator(clean_snapshot)
        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")

        orchestrator.reset()

        assert run.stage == S.FINISHED

    def test_inventory_failure_returns_to_idle(self):
        error = InventoryPermissionError("API_DISABLED", remediation_url="https://console.cloud.google.com/apis")
        orchestrator, _, _ = build_orchestrator(fetch_error=error)

        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech", mode="real-api")

        assert run.stage_history == [S.IDLE, S.INGESTING, S.IDLE]
        assert run.error == "API_DISABLED"
        assert run.failure is error
        assert run.snapshot is None and run.candidates == [] and run.actions == [] and run.report is None
        assert run.logs[-1].kind == 'error'
        assert not orchestrator.is_active()

    def test_start_while_active_is_noop(self, wasteful_snapshot):
        orchestrator, fetcher, _ = build_orchestrator(wasteful_snapshot, stop_web_01())
        first = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")

        second = orchestrator.start_run("other-project-1", "Other.", "Retail")

        assert second is first
        assert fetcher.call_count == 1

    def test_new_run_after_finish_discards_previous_state(self, clean_snapshot, wasteful_snapshot):
        orchestrator, fetcher, _ = build_orchestrator(clean_snapshot)
        first = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")

        fetcher.return_value = wasteful_snapshot
        second = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")

        assert second is not first
        assert second.run_id != first.run_id
        assert second.stage_history[0] == S.IDLE

    def test_execute_outside_approval_raises(self, clean_snapshot):
        orchestrator, _, _ = build_orchestrator(clean_snapshot)

        with pytest.raises(StateError):
            orchestrator.execute_approved()

        orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")
        with pytest.raises(StateError):
            orchestrator.execute_approved()

    def test_approval_ignored_outside_approval_stage(self, clean_snapshot):
        orchestrator, _, _ = build_orchestrator(clean_snapshot)
        orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")
        assert orchestrator.approve("anything") is False

    def test_logs_are_forwarded(self, wasteful_snapshot):
        seen = []
        orchestrator, _, _ = build_orchestrator(wasteful_snapshot, stop_web_01(), listener=seen.append)

        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")

        assert seen == run.logs
        assert any(entry.message == "Tool: plan_shutdown_vm -> web-01" for entry in seen)

    def test_failing_listener_does_not_break_run(self, clean_snapshot):
        listener = Mock(side_effect=RuntimeError("console gone"))
        orchestrator, _, _ = build_orchestrator(clean_snapshot, listener=listener)

        run = orchestrator.start_run("acme-prod-123", "Optimize for cost.", "Tech")
        assert run.stage == S.FINISHED


class TestTransitions:

    def test_illegal_transition_raises(self):
        run = Run(run_id="r1", project_id="acme-prod-123", user_intent="x", industry="Tech")
        with pytest.raises(StateError):
            advance(run, S.EXECUTING)

    def test_any_stage_may_return_to_idle(self):
        run = Run(run_id="r1", project_id="acme-prod-123", user_intent="x", industry="Tech")
        advance(run, S.INGESTING)
        advance(run, S.IDENTIFYING)
        advance(run, S.IDLE)
        assert run.stage_history == [S.IDLE, S.INGESTING, S.IDENTIFYING, S.IDLE]

    def test_finished_is_terminal(self):
        run = Run(run_id="r1", project_id="acme-prod-123", user_intent="x", industry="Tech", stage=S.FINISHED)
        with pytest.raises(StateError):
            advance(run, S.INGESTING)
