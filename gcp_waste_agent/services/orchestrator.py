"""
Run orchestrator: sequences ingestion, classification, reasoning, approval,
execution and reporting for a single active run.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional, Union

from .classifier import analyze_resources
from .context import to_context
from .execution import ApprovalGate, ExecutionEngine
from .inventory import GcpCredentials, fetch_inventory
from .models import ExecutionRecord, InventorySnapshot, OptimizationCandidate, PlannedAction
from .reasoning import OptimizationAgent
from .reporting import ReportingAgent
from ..core.exceptions import StateError


logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    IDLE = "idle"
    INGESTING = "ingesting"
    IDENTIFYING = "identifying"
    REASONING = "reasoning"
    APPROVAL = "approval"
    EXECUTING = "executing"
    REPORTING = "reporting"
    FINISHED = "finished"


# Every stage may additionally fall back to IDLE
TRANSITIONS: Dict[PipelineStage, FrozenSet[PipelineStage]] = {
    PipelineStage.IDLE: frozenset({PipelineStage.INGESTING}),
    PipelineStage.INGESTING: frozenset({PipelineStage.IDENTIFYING}),
    PipelineStage.IDENTIFYING: frozenset({PipelineStage.REASONING, PipelineStage.REPORTING}),
    PipelineStage.REASONING: frozenset({PipelineStage.APPROVAL, PipelineStage.REPORTING}),
    PipelineStage.APPROVAL: frozenset({PipelineStage.EXECUTING}),
    PipelineStage.EXECUTING: frozenset({PipelineStage.REPORTING}),
    PipelineStage.REPORTING: frozenset({PipelineStage.FINISHED}),
    PipelineStage.FINISHED: frozenset(),
}


@dataclass
class LogEntry:
    kind: str                        # 'thought', 'tool_call', 'final', 'stage', 'error'
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class Run:
    """State of one pipeline run. Mutated only by the orchestrator."""
    run_id: str
    project_id: str
    user_intent: str
    industry: str
    stage: PipelineStage = PipelineStage.IDLE
    stage_history: List[PipelineStage] = field(default_factory=lambda: [PipelineStage.IDLE])
    snapshot: Optional[InventorySnapshot] = None
    candidates: List[OptimizationCandidate] = field(default_factory=list)
    actions: List[PlannedAction] = field(default_factory=list)
    report: Optional[str] = None
    visual_analysis: str = ''
    execution_records: List[ExecutionRecord] = field(default_factory=list)
    logs: List[LogEntry] = field(default_factory=list)
    error: Optional[str] = None
    failure: Optional[Exception] = field(default=None, repr=False, compare=False)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.stage not in (PipelineStage.IDLE, PipelineStage.FINISHED)


def advance(run: Run, stage: PipelineStage) -> Run:
    """Move a run to the next stage.

    Raises:
        StateError: If the transition is not allowed from the current stage
    """
    if stage != PipelineStage.IDLE and stage not in TRANSITIONS[run.stage]:
        raise StateError(f"Illegal stage transition: {run.stage.value} -> {stage.value}")

    run.stage = stage
    run.stage_history.append(stage)
    logger.debug(f"Run {run.run_id} entered stage {stage.value}")
    return run


InventoryFetcher = Callable[..., InventorySnapshot]
LogListener = Callable[[LogEntry], None]


class RunOrchestrator:
    """Owns the single active run and drives it through the pipeline."""

    def __init__(
        self,
        inventory_fetcher: InventoryFetcher = fetch_inventory,
        optimization_agent: Optional[OptimizationAgent] = None,
        reporting_agent: Optional[ReportingAgent] = None,
        execution_engine: Optional[ExecutionEngine] = None,
        log_listener: Optional[LogListener] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the orchestrator.

        Args:
            inventory_fetcher: Callable with the fetch_inventory signature
            optimization_agent: Negotiation loop. Defaults to one with no
                                reasoning service, which proposes nothing.
            reporting_agent: Report generator. Defaults to metrics only.
            execution_engine: Engine for approved actions. Defaults to simulated.
            log_listener: Called for every run log entry (e.g. console output)
            clock: Time source for classification and timestamps
        """
        self.inventory_fetcher = inventory_fetcher
        self.optimization_agent = optimization_agent or OptimizationAgent(None)
        self.reporting_agent = reporting_agent or ReportingAgent(None)
        self.execution_engine = execution_engine or ExecutionEngine()
        self.log_listener = log_listener
        self.clock = clock
        self._run: Optional[Run] = None

    @property
    def current_run(self) -> Optional[Run]:
        return self._run

    def is_active(self) -> bool:
        return self._run is not None and self._run.is_active

    def start_run(
        self,
        project_id: str,
        user_intent: str,
        industry: str,
        mode: str = 'simulated',
        credentials: Optional[GcpCredentials] = None,
        file_input: Optional[Union[str, Path]] = None,
        visual_analysis: str = '',
        seed: Optional[int] = None,
    ) -> Run:
        """Start a new run and drive it until approval or completion.

        Starting while another run is active is a no-op that returns the
        active run. Inventory or classification failures send the run back
        to idle with the error recorded.
        """
        if self.is_active():
            logger.warning(f"Run {self._run.run_id} is still active; ignoring start request")
            return self._run

        run = Run(
            run_id=f"run-{self.clock().strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:6]}",
            project_id=project_id,
            user_intent=user_intent,
            industry=industry,
            visual_analysis=visual_analysis or '',
            started_at=self.clock(),
        )
        self._run = run
        log = self._log_callback(run)

        try:
            self._enter(run, PipelineStage.INGESTING)
            log('thought', f"[Ingestion] Fetching inventory ({mode})...")
            run.snapshot = self.inventory_fetcher(
                mode, credentials=credentials, file_input=file_input, seed=seed
            )
            log('thought', f"[Ingestion] {run.snapshot.resource_count} resources, "
                           f"${run.snapshot.total_monthly_bill:.2f}/month")

            self._enter(run, PipelineStage.IDENTIFYING)
            run.candidates = analyze_resources(run.snapshot, now=self.clock().astimezone())
            log('thought', f"[Classification] {len(run.candidates)} optimization candidates")

            if not run.candidates:
                return self._report_and_finish(run)

            self._enter(run, PipelineStage.REASONING)
            run.actions = self.optimization_agent.run(
                to_context(run.candidates), user_intent, run.visual_analysis, log_callback=log
            )

            if not run.actions:
                return self._report_and_finish(run)

            self._enter(run, PipelineStage.APPROVAL)
            log('thought', f"[Approval] {len(run.actions)} actions awaiting review")
            return run

        except Exception as e:
            return self._fail(run, e)

    def approve(self, action_id: str) -> bool:
        return self._gate().approve(action_id)

    def reject(self, action_id: str) -> bool:
        return self._gate().reject(action_id)

    def execute_approved(self) -> Run:
        """Execute approved actions, then report and finish the run.

        Raises:
            StateError: If the active run is not awaiting approval
        """
        run = self._run
        if run is None or run.stage != PipelineStage.APPROVAL:
            stage = run.stage.value if run else 'none'
            raise StateError(f"No run awaiting approval (current stage: {stage})")
        if not ApprovalGate(run.actions).approved():
            raise StateError("No approved actions to execute; approve one or reset the run")

        log = self._log_callback(run)
        self._enter(run, PipelineStage.EXECUTING)

        def on_executed(record: ExecutionRecord) -> None:
            log('tool_call', f"[Execution] {record.action_type.value} {record.target}")

        records = self.execution_engine.execute(run.actions, project_id=run.project_id, on_executed=on_executed)
        run.execution_records.extend(records)

        return self._report_and_finish(run)

    def reset(self) -> None:
        """Abandon the current run, returning it to idle.

        Planned actions and their decisions stay on the run for the record.
        """
        if self._run is not None and self._run.is_active:
            self._enter(self._run, PipelineStage.IDLE)
            self._run.finished_at = self.clock()

    def _gate(self) -> ApprovalGate:
        if self._run is None or self._run.stage != PipelineStage.APPROVAL:
            return ApprovalGate([])
        return ApprovalGate(self._run.actions)

    def _enter(self, run: Run, stage: PipelineStage) -> None:
        advance(run, stage)
        self._append_log(run, LogEntry('stage', stage.value, self.clock()))

    def _report_and_finish(self, run: Run) -> Run:
        self._enter(run, PipelineStage.REPORTING)
        run.report = self.reporting_agent.generate_report(
            run.candidates, run.actions, run.project_id, run.industry,
            log_callback=self._log_callback(run),
        )
        self._enter(run, PipelineStage.FINISHED)
        run.finished_at = self.clock()
        logger.info(f"Run {run.run_id} finished with {len(run.execution_records)} executed actions")
        return run

    def _fail(self, run: Run, error: Exception) -> Run:
        logger.error(f"Run {run.run_id} failed during {run.stage.value}: {error}")
        run.error = str(error)
        run.failure = error
        run.snapshot = None
        run.candidates = []
        run.actions = []
        run.report = None
        self._append_log(run, LogEntry('error', f"Pipeline Failed: {error}", self.clock()))
        advance(run, PipelineStage.IDLE)
        return run

    def _log_callback(self, run: Run) -> Callable[[str, str], None]:
        def log(kind: str, message: str) -> None:
            self._append_log(run, LogEntry(kind, message, self.clock()))
        return log

    def _append_log(self, run: Run, entry: LogEntry) -> None:
        run.logs.append(entry)
        logger.debug(f"[{entry.kind}] {entry.message}")
        if self.log_listener:
            # Listener errors must not disturb the pipeline
            try:
                self.log_listener(entry)
            except Exception as e:
                logger.debug(f"Log listener failed: {e}")
