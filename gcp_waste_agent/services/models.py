"""
Data models for GCP inventory, waste candidates and remediation actions.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any, Union

from .pricing import round_currency


class ResourceType(str, Enum):
    VM = "VM"
    VM_GPU = "VM_GPU"
    DISK = "DISK"
    SQL = "SQL"
    RUN = "RUN"


class WasteReason(str, Enum):
    IDLE_COMPUTE = "IDLE_COMPUTE"
    OVER_PROVISIONED = "OVER_PROVISIONED"
    UNDERUTILIZED_GPU = "UNDERUTILIZED_GPU"
    ORPHANED_ASSET = "ORPHANED_ASSET"
    IDLE_DATABASE = "IDLE_DATABASE"
    ZOMBIE_SERVICE = "ZOMBIE_SERVICE"


class ActionType(str, Enum):
    STOP_VM = "STOP_VM"
    RIGHTSIZE_VM = "RIGHTSIZE_VM"
    DELETE_DISK = "DELETE_DISK"
    DELETE_SQL = "DELETE_SQL"
    DELETE_RUN = "DELETE_RUN"


class ActionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTED = "executed"


@dataclass(frozen=True)
class VirtualMachine:
    """A Compute Engine instance."""
    id: str
    name: str
    zone: str
    machine_type: str
    status: str                      # 'RUNNING', 'STOPPED', 'TERMINATED'
    cpu_7day_avg: Optional[float]    # 0.0 to 1.0, None when no metric is available
    has_gpu: bool
    labels: Dict[str, str]
    creation_timestamp: datetime
    monthly_cost: float


@dataclass(frozen=True)
class Disk:
    """A persistent disk."""
    id: str
    name: str
    zone: str
    size_gb: int
    users: List[str]                 # Instance URLs the disk is attached to
    last_attach_timestamp: datetime
    labels: Dict[str, str]
    monthly_cost: float
    disk_type: str = "pd-standard"


@dataclass(frozen=True)
class ManagedDatabase:
    """A Cloud SQL instance."""
    id: str
    name: str
    region: str
    tier: str
    status: str                      # 'RUNNABLE', 'SUSPENDED'
    connection_count_7day_avg: Optional[float]   # None when no metric is available
    labels: Dict[str, str]
    monthly_cost: float


@dataclass(frozen=True)
class ServerlessService:
    """A Cloud Run service."""
    id: str
    name: str
    region: str
    request_count_7day: Optional[int]            # None when no metric is available
    last_active_timestamp: datetime
    labels: Dict[str, str]
    monthly_cost: float


InventoryRecord = Union[VirtualMachine, Disk, ManagedDatabase, ServerlessService]


@dataclass(frozen=True)
class CostItem:
    """One billable unit in the cost breakdown."""
    id: str
    name: str
    type: str                        # 'Compute Engine', 'Persistent Disk', 'Cloud SQL', 'Cloud Run'
    cost: float


@dataclass(frozen=True)
class IntegrityCheck:
    passed: bool
    issues: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class InventorySnapshot:
    """Normalized resource inventory for one run. Never mutated after creation."""
    vms: List[VirtualMachine]
    disks: List[Disk]
    sql_instances: List[ManagedDatabase]
    run_services: List[ServerlessService]
    cost_breakdown: List[CostItem]
    total_monthly_bill: float
    active_regions: List[str]
    integrity_check: IntegrityCheck

    @classmethod
    def build(
        cls,
        vms: Optional[List[VirtualMachine]] = None,
        disks: Optional[List[Disk]] = None,
        sql_instances: Optional[List[ManagedDatabase]] = None,
        run_services: Optional[List[ServerlessService]] = None,
        cost_breakdown: Optional[List[CostItem]] = None,
        issues: Optional[List[str]] = None,
    ) -> "InventorySnapshot":
        """Create a snapshot whose total is derived from the cost breakdown.

        Item costs are already rounded to cents by the pricing engine; the
        total is their sum rounded once more, so per-item rounding drift can
        accumulate across a large breakdown.
        """
        vms = list(vms or [])
        disks = list(disks or [])
        sql_instances = list(sql_instances or [])
        run_services = list(run_services or [])
        cost_breakdown = list(cost_breakdown or [])
        issues = list(issues or [])

        total = round_currency(sum(item.cost for item in cost_breakdown))

        regions: List[str] = []
        for location in [vm.zone for vm in vms] + [d.zone for d in disks] \
                + [s.region for s in sql_instances] + [r.region for r in run_services]:
            if location and location not in regions:
                regions.append(location)

        return cls(
            vms=vms,
            disks=disks,
            sql_instances=sql_instances,
            run_services=run_services,
            cost_breakdown=cost_breakdown,
            total_monthly_bill=total,
            active_regions=regions,
            integrity_check=IntegrityCheck(passed=not issues, issues=issues),
        )

    def verify_integrity(self) -> bool:
        """Check that the total bill matches the cost breakdown to the cent."""
        expected = round_currency(sum(item.cost for item in self.cost_breakdown))
        return abs(self.total_monthly_bill - expected) < 0.005

    @property
    def resource_count(self) -> int:
        return len(self.vms) + len(self.disks) + len(self.sql_instances) + len(self.run_services)


@dataclass(frozen=True)
class OptimizationCandidate:
    """A resource flagged as wasteful by the classification engine."""
    id: str                          # Source resource id
    resource_name: str
    resource_type: ResourceType
    reason: WasteReason
    details: str
    potential_savings: float
    raw_data: InventoryRecord

    @property
    def labels(self) -> Dict[str, str]:
        return self.raw_data.labels


@dataclass
class ActionDetails:
    """Before/after shapes for a rightsizing action."""
    from_type: Optional[str] = None
    to_type: Optional[str] = None


@dataclass
class PlannedAction:
    """A remediation proposed by the reasoning agent, gated by human approval."""
    id: str
    type: ActionType
    target: str
    zone: str
    confidence: int
    reasoning: str
    status: ActionStatus = ActionStatus.PENDING
    details: Optional[ActionDetails] = None

    def approve(self) -> bool:
        """Mark the action approved. Returns True if the status changed."""
        if self.status in (ActionStatus.PENDING, ActionStatus.REJECTED):
            self.status = ActionStatus.APPROVED
            return True
        return False

    def reject(self) -> bool:
        """Mark the action rejected. Returns True if the status changed."""
        if self.status in (ActionStatus.PENDING, ActionStatus.APPROVED):
            self.status = ActionStatus.REJECTED
            return True
        return False

    def mark_executed(self) -> None:
        if self.status != ActionStatus.APPROVED:
            raise ValueError(
                f"Action {self.id} cannot be executed from status '{self.status.value}'"
            )
        self.status = ActionStatus.EXECUTED


@dataclass
class ExecutionRecord:
    """Outcome of executing one approved action."""
    action_id: str
    action_type: ActionType
    target: str
    command: str
    executed_at: datetime
    simulated: bool


def to_dict(value: Any) -> Any:
    """Convert models (and containers of them) into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, '__dataclass_fields__'):
        return {name: to_dict(getattr(value, name)) for name in value.__dataclass_fields__}
    if isinstance(value, dict):
        return {key: to_dict(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dict(item) for item in value]
    return value
