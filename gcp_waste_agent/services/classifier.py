"""
Waste classification engine.

Maps an inventory snapshot to optimization candidates using 7-day usage
heuristics. Candidates are ordered VMs, disks, databases, then serverless.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .models import (
    InventorySnapshot, OptimizationCandidate, ResourceType, WasteReason,
    VirtualMachine, Disk, ManagedDatabase, ServerlessService,
)
from .pricing import round_currency


IDLE_CPU_THRESHOLD = 0.05
RIGHTSIZE_CPU_THRESHOLD = 0.15
GPU_CPU_THRESHOLD = 0.10
ORPHANED_DISK_HOURS = 48

RIGHTSIZE_SAVINGS_RATIO = 0.5
GPU_SAVINGS_RATIO = 0.8


def analyze_resources(snapshot: InventorySnapshot, now: Optional[datetime] = None) -> List[OptimizationCandidate]:
    """Classify waste in an inventory snapshot.

    Args:
        snapshot: Inventory to analyze (not modified)
        now: Reference time for disk detachment age. Defaults to current UTC time.

    Returns:
        Ordered list of optimization candidates
    """
    now = now or datetime.now(timezone.utc)
    candidates: List[OptimizationCandidate] = []

    for vm in snapshot.vms:
        candidates.extend(_classify_vm(vm))

    for disk in snapshot.disks:
        candidate = _classify_disk(disk, now)
        if candidate:
            candidates.append(candidate)

    for sql in snapshot.sql_instances:
        candidate = _classify_database(sql)
        if candidate:
            candidates.append(candidate)

    for service in snapshot.run_services:
        candidate = _classify_service(service)
        if candidate:
            candidates.append(candidate)

    return candidates


def _classify_vm(vm: VirtualMachine) -> List[OptimizationCandidate]:
    found = []
    cpu = vm.cpu_7day_avg

    # No utilization signal, nothing to judge
    if cpu is None:
        return found

    running = vm.status == 'RUNNING'
    if running and cpu < IDLE_CPU_THRESHOLD:
        found.append(OptimizationCandidate(
            id=vm.id,
            resource_name=vm.name,
            resource_type=ResourceType.VM,
            reason=WasteReason.IDLE_COMPUTE,
            details=f"7-day Avg CPU is {cpu * 100:.2f}%.",
            potential_savings=round_currency(vm.monthly_cost),
            raw_data=vm,
        ))
    elif running and cpu < RIGHTSIZE_CPU_THRESHOLD:
        found.append(OptimizationCandidate(
            id=vm.id,
            resource_name=vm.name,
            resource_type=ResourceType.VM,
            reason=WasteReason.OVER_PROVISIONED,
            details="CPU < 15%. Candidate for Rightsizing.",
            potential_savings=round_currency(vm.monthly_cost * RIGHTSIZE_SAVINGS_RATIO),
            raw_data=vm,
        ))

    # Independent of the idle/rightsize branch; both may apply to one VM
    if vm.has_gpu and cpu < GPU_CPU_THRESHOLD:
        found.append(OptimizationCandidate(
            id=vm.id,
            resource_name=vm.name,
            resource_type=ResourceType.VM_GPU,
            reason=WasteReason.UNDERUTILIZED_GPU,
            details="GPU instance with low host load.",
            potential_savings=round_currency(vm.monthly_cost * GPU_SAVINGS_RATIO),
            raw_data=vm,
        ))

    return found


def _classify_disk(disk: Disk, now: datetime) -> Optional[OptimizationCandidate]:
    if disk.users:
        return None

    last_attach = disk.last_attach_timestamp
    if last_attach.tzinfo is None:
        last_attach = last_attach.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    hours = (now - last_attach).total_seconds() / 3600
    if hours <= ORPHANED_DISK_HOURS:
        return None

    return OptimizationCandidate(
        id=disk.id,
        resource_name=disk.name,
        resource_type=ResourceType.DISK,
        reason=WasteReason.ORPHANED_ASSET,
        details=f"Detached for {int(hours)} hours.",
        potential_savings=round_currency(disk.monthly_cost),
        raw_data=disk,
    )


def _classify_database(sql: ManagedDatabase) -> Optional[OptimizationCandidate]:
    if sql.status != 'RUNNABLE' or sql.connection_count_7day_avg != 0:
        return None

    return OptimizationCandidate(
        id=sql.id,
        resource_name=sql.name,
        resource_type=ResourceType.SQL,
        reason=WasteReason.IDLE_DATABASE,
        details="Zero active connections in 7 days.",
        potential_savings=round_currency(sql.monthly_cost),
        raw_data=sql,
    )


def _classify_service(service: ServerlessService) -> Optional[OptimizationCandidate]:
    if service.request_count_7day != 0:
        return None

    return OptimizationCandidate(
        id=service.id,
        resource_name=service.name,
        resource_type=ResourceType.RUN,
        reason=WasteReason.ZOMBIE_SERVICE,
        details="Zero requests in last 7 days.",
        potential_savings=round_currency(service.monthly_cost),
        raw_data=service,
    )


def summarize_candidates(candidates: List[OptimizationCandidate]) -> Dict[str, Dict[str, float]]:
    """Group candidate counts and potential savings by waste reason."""
    summary: Dict[str, Dict[str, float]] = {}
    for candidate in candidates:
        bucket = summary.setdefault(candidate.reason.value, {'count': 0, 'potential_savings': 0.0})
        bucket['count'] += 1
        bucket['potential_savings'] = round_currency(bucket['potential_savings'] + candidate.potential_savings)
    return summary
