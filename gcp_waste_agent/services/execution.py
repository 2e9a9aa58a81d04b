"""
Approval gate and execution engine for planned remediation actions.
"""
import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from .models import ActionStatus, ActionType, ExecutionRecord, PlannedAction


logger = logging.getLogger(__name__)

DEFAULT_RIGHTSIZE_TYPE = 'e2-medium'
SIMULATED_DELAY_SECONDS = 0.5


class ApprovalGate:
    """Human-mediated approve/reject decisions over a list of planned actions."""

    def __init__(self, actions: List[PlannedAction]):
        self.actions = actions

    def find(self, action_id: str) -> Optional[PlannedAction]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def approve(self, action_id: str) -> bool:
        """Approve an action. Unknown ids are a no-op.

        Returns:
            True if the action status changed
        """
        action = self.find(action_id)
        if action is None:
            logger.debug(f"Approve ignored for unknown action {action_id}")
            return False
        changed = action.approve()
        if changed:
            logger.info(f"Approved {action.type.value} for {action.target}")
        return changed

    def reject(self, action_id: str) -> bool:
        """Reject an action. Unknown ids are a no-op.

        Returns:
            True if the action status changed
        """
        action = self.find(action_id)
        if action is None:
            logger.debug(f"Reject ignored for unknown action {action_id}")
            return False
        changed = action.reject()
        if changed:
            logger.info(f"Rejected {action.type.value} for {action.target}")
        return changed

    def approved(self) -> List[PlannedAction]:
        return [a for a in self.actions if a.status == ActionStatus.APPROVED]

    def pending(self) -> List[PlannedAction]:
        return [a for a in self.actions if a.status == ActionStatus.PENDING]


def generate_cli_command(action: PlannedAction, project_id: Optional[str] = None) -> str:
    """Generate the idempotent gcloud command for a planned action.

    Args:
        action: Action to translate
        project_id: Project to scope the command to. Defaults to $PROJECT_ID.

    Returns:
        Shell command string, or a comment for unknown action types
    """
    base = 'gcloud'
    flags = f"--quiet --project={project_id or '$PROJECT_ID'}"
    target = action.target
    zone = action.zone

    if action.type == ActionType.STOP_VM:
        return f"{base} compute instances stop {target} --zone={zone} {flags}"

    if action.type == ActionType.RIGHTSIZE_VM:
        new_type = (action.details.to_type if action.details else None) or DEFAULT_RIGHTSIZE_TYPE
        return (
            f"{base} compute instances stop {target} --zone={zone} {flags} && \\\n"
            f"{base} compute instances set-machine-type {target} --machine-type={new_type} --zone={zone} {flags} && \\\n"
            f"{base} compute instances start {target} --zone={zone} {flags}"
        )

    if action.type == ActionType.DELETE_DISK:
        return f"{base} compute disks delete {target} --zone={zone} {flags}"

    if action.type == ActionType.DELETE_SQL:
        # Cloud SQL instance names are project-global; gcloud takes no location flag
        return f"{base} sql instances delete {target} {flags}"

    if action.type == ActionType.DELETE_RUN:
        return f"{base} run services delete {target} --region={zone} {flags}"

    action_type = getattr(action.type, 'value', action.type)
    return f"# Unknown action: {action_type}"


class ExecutionEngine:
    """Applies approved actions sequentially, in list order."""

    def __init__(
        self,
        mode: str = 'simulated',
        delay_seconds: float = SIMULATED_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the execution engine.

        Args:
            mode: 'simulated' waits a fixed delay per action; 'real' emits the
                  provider commands without delay
            delay_seconds: Per-action delay in simulated mode
            sleep: Sleep function, injectable for tests
        """
        if mode not in ('simulated', 'real'):
            raise ValueError(f"Unsupported execution mode: {mode}")
        self.mode = mode
        self.delay_seconds = delay_seconds
        self.sleep = sleep

    def execute(
        self,
        actions: List[PlannedAction],
        project_id: Optional[str] = None,
        on_executed: Optional[Callable[[ExecutionRecord], None]] = None,
    ) -> List[ExecutionRecord]:
        """Execute every approved action in the given list.

        Rejected and pending actions are skipped and left untouched.
        """
        approved = [a for a in actions if a.status == ActionStatus.APPROVED]
        records = []

        for action in approved:
            command = generate_cli_command(action, project_id)
            if self.mode == 'simulated':
                self.sleep(self.delay_seconds)

            action.mark_executed()
            record = ExecutionRecord(
                action_id=action.id,
                action_type=action.type,
                target=action.target,
                command=command,
                executed_at=datetime.now(),
                simulated=self.mode == 'simulated',
            )
            records.append(record)
            logger.info(f"Executed {action.type.value} on {action.target}")

            if on_executed:
                on_executed(record)

        return records
