"""
Run history persistence for auditing finished pipeline runs.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..services.models import (
    ActionDetails, ActionStatus, ActionType, ExecutionRecord, PlannedAction, to_dict,
)
from ..services.orchestrator import Run
from ..core.exceptions import StateError

logger = logging.getLogger(__name__)


@dataclass
class RunRecord:
    """Audit view of a stored run."""
    run_id: str
    project_id: str
    user_intent: str
    industry: str
    stage: str
    stage_history: List[str]
    started_at: datetime
    finished_at: Optional[datetime]
    total_monthly_bill: Optional[float]
    candidates: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[PlannedAction] = field(default_factory=list)
    execution_records: List[ExecutionRecord] = field(default_factory=list)
    report: Optional[str] = None
    error: Optional[str] = None


class RunStore:
    """Stores runs as JSON files, one per run."""

    def __init__(self, run_dir: Optional[Path] = None):
        """Initialize the run store.

        Args:
            run_dir: Directory to store runs. Defaults to ~/.gcp-waste-agent/runs/
        """
        if run_dir is None:
            run_dir = Path.home() / ".gcp-waste-agent" / "runs"

        self.run_dir = Path(run_dir)
        self.run_dir.mkdir(parents=True, exist_ok=True)

    def save_run(self, run: Run) -> Path:
        """Save a run to disk.

        Returns:
            Path to the saved run file

        Raises:
            StateError: If saving fails
        """
        try:
            data = self._serialize_run(run)
            filepath = self.run_dir / f"{run.run_id}.json"

            temp_file = filepath.with_suffix('.tmp')
            with open(temp_file, 'w') as f:
                json.dump(data, f, indent=2, default=str)

            temp_file.replace(filepath)

            logger.info(f"Saved run to {filepath}")
            return filepath

        except (OSError, TypeError, ValueError) as e:
            raise StateError(f"Failed to save run: {e}")

    def load_run(self, run_id: str) -> Optional[RunRecord]:
        """Load a run by ID.

        Returns:
            RunRecord if found, None otherwise

        Raises:
            StateError: If the file is corrupted
        """
        filepath = self.run_dir / f"{run_id}.json"

        if not filepath.exists():
            return None

        try:
            with open(filepath, 'r') as f:
                data = json.load(f)
            return self._deserialize_run(data)

        except json.JSONDecodeError as e:
            raise StateError(f"Run file corrupted: {e}")
        except (KeyError, TypeError, ValueError) as e:
            raise StateError(f"Failed to load run: {e}")

    def list_runs(self) -> List[Dict[str, Any]]:
        """List stored runs, newest first."""
        runs = []

        for filepath in self.run_dir.glob("*.json"):
            try:
                with open(filepath, 'r') as f:
                    data = json.load(f)

                actions = data.get('actions', [])
                runs.append({
                    'run_id': data.get('run_id'),
                    'project_id': data.get('project_id'),
                    'started_at': data.get('started_at'),
                    'stage': data.get('stage'),
                    'candidate_count': len(data.get('candidates', [])),
                    'action_count': len(actions),
                    'executed_count': sum(1 for a in actions if a.get('status') == ActionStatus.EXECUTED.value),
                    'error': data.get('error'),
                })
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to read run {filepath}: {e}")
                continue

        runs.sort(key=lambda r: r.get('started_at') or '', reverse=True)
        return runs

    def delete_run(self, run_id: str) -> bool:
        filepath = self.run_dir / f"{run_id}.json"

        if filepath.exists():
            filepath.unlink()
            logger.info(f"Deleted run {run_id}")
            return True

        return False

    def cleanup_old_runs(self, keep_count: int = 10) -> int:
        """Remove old runs, keeping only the most recent ones.

        Returns:
            Number of runs deleted
        """
        runs = self.list_runs()

        if len(runs) <= keep_count:
            return 0

        deleted = 0
        for run_info in runs[keep_count:]:
            if run_info['run_id'] and self.delete_run(run_info['run_id']):
                deleted += 1

        return deleted

    def _serialize_run(self, run: Run) -> Dict[str, Any]:
        return {
            'run_id': run.run_id,
            'project_id': run.project_id,
            'user_intent': run.user_intent,
            'industry': run.industry,
            'stage': run.stage.value,
            'stage_history': [stage.value for stage in run.stage_history],
            'started_at': run.started_at.isoformat(),
            'finished_at': run.finished_at.isoformat() if run.finished_at else None,
            'total_monthly_bill': run.snapshot.total_monthly_bill if run.snapshot else None,
            'candidates': [
                {
                    'id': c.id,
                    'resource_name': c.resource_name,
                    'resource_type': c.resource_type.value,
                    'reason': c.reason.value,
                    'details': c.details,
                    'potential_savings': c.potential_savings,
                }
                for c in run.candidates
            ],
            'actions': [to_dict(action) for action in run.actions],
            'execution_records': [to_dict(record) for record in run.execution_records],
            'report': run.report,
            'error': run.error,
            'logs': [to_dict(entry) for entry in run.logs],
        }

    def _deserialize_run(self, data: Dict[str, Any]) -> RunRecord:
        finished_at = data.get('finished_at')
        return RunRecord(
            run_id=data['run_id'],
            project_id=data['project_id'],
            user_intent=data.get('user_intent', ''),
            industry=data.get('industry', ''),
            stage=data['stage'],
            stage_history=data.get('stage_history', []),
            started_at=datetime.fromisoformat(data['started_at']),
            finished_at=datetime.fromisoformat(finished_at) if finished_at else None,
            total_monthly_bill=data.get('total_monthly_bill'),
            candidates=data.get('candidates', []),
            actions=[self._deserialize_action(a) for a in data.get('actions', [])],
            execution_records=[self._deserialize_record(r) for r in data.get('execution_records', [])],
            report=data.get('report'),
            error=data.get('error'),
        )

    def _deserialize_action(self, data: Dict[str, Any]) -> PlannedAction:
        details = data.get('details')
        return PlannedAction(
            id=data['id'],
            type=ActionType(data['type']),
            target=data['target'],
            zone=data['zone'],
            confidence=data['confidence'],
            reasoning=data.get('reasoning', ''),
            status=ActionStatus(data['status']),
            details=ActionDetails(**details) if details else None,
        )

    def _deserialize_record(self, data: Dict[str, Any]) -> ExecutionRecord:
        return ExecutionRecord(
            action_id=data['action_id'],
            action_type=ActionType(data['action_type']),
            target=data['target'],
            command=data['command'],
            executed_at=datetime.fromisoformat(data['executed_at']),
            simulated=data['simulated'],
        )
