"""
Reporting agent: success metrics plus an executive narrative.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from .models import ActionStatus, OptimizationCandidate, PlannedAction
from .pricing import round_currency
from .reasoning import AgentLogCallback, ReasoningClient


logger = logging.getLogger(__name__)

REPORT_FAILURE = "Report generation error."
NO_WASTE_NOTE = "No waste was found in this environment. The infrastructure is fully optimized."
REPORT_SYSTEM_TEXT = "You are a Chief FinOps Officer. You write professional, data-driven executive summaries."


@dataclass(frozen=True)
class ReportMetrics:
    total_waste_identified: float
    realized_savings: float
    projected_annual_roi: float
    optimization_rate: int
    executed_count: int
    rejected_count: int
    pending_count: int
    candidate_count: int

    @property
    def is_clean(self) -> bool:
        return self.candidate_count == 0


def compute_report_metrics(candidates: List[OptimizationCandidate], actions: List[PlannedAction]) -> ReportMetrics:
    """Compute report numbers from the final candidate and action lists.

    Realized savings count the first candidate matching each executed
    action's target, so a VM flagged twice is only credited once.
    """
    total_waste = round_currency(sum(c.potential_savings for c in candidates))
    executed = [a for a in actions if a.status == ActionStatus.EXECUTED]
    rejected = [a for a in actions if a.status == ActionStatus.REJECTED]
    pending = [a for a in actions if a.status == ActionStatus.PENDING]

    realized = 0.0
    for action in executed:
        match = next((c for c in candidates if c.resource_name == action.target), None)
        if match is not None:
            realized += match.potential_savings
    realized = round_currency(realized)

    if candidates:
        optimization_rate = math.floor(len(executed) / len(candidates) * 100 + 0.5)
    else:
        optimization_rate = 100

    return ReportMetrics(
        total_waste_identified=total_waste,
        realized_savings=realized,
        projected_annual_roi=round_currency(realized * 12),
        optimization_rate=optimization_rate,
        executed_count=len(executed),
        rejected_count=len(rejected),
        pending_count=len(pending),
        candidate_count=len(candidates),
    )


def format_metrics_summary(project_id: str, industry: str, metrics: ReportMetrics) -> str:
    lines = [
        f"# Executive FinOps Report: {project_id}",
        "",
        f"- Industry Domain: {industry}",
        f"- Total Waste Identified: ${metrics.total_waste_identified:.2f}",
        f"- Realized Monthly Savings: ${metrics.realized_savings:.2f}",
        f"- Projected Annual ROI: ${metrics.projected_annual_roi:.2f}",
        f"- Optimization Rate: {metrics.optimization_rate}%",
        f"- Actions Executed: {metrics.executed_count}",
        f"- Actions Rejected: {metrics.rejected_count}",
    ]
    if metrics.pending_count:
        lines.append(f"- Actions Left Pending: {metrics.pending_count}")
    if metrics.is_clean:
        lines.extend(["", f"**NOTE**: {NO_WASTE_NOTE}"])
    return "\n".join(lines)


def build_narrative_prompt(project_id: str, industry: str, metrics: ReportMetrics) -> str:
    clean_note = f"**NOTE**: {NO_WASTE_NOTE}" if metrics.is_clean else ""
    return f"""
**Project Context**:
- Project ID: {project_id}
- Industry Domain: {industry}

**Success Metrics**:
- Total Waste Identified: ${metrics.total_waste_identified:.2f}
- Realized Monthly Savings: ${metrics.realized_savings:.2f}
- Projected Annual ROI: ${metrics.projected_annual_roi:.2f}
- Optimization Rate: {metrics.optimization_rate}%

[Action Log]
Executed: {metrics.executed_count}
Rejected: {metrics.rejected_count}

{clean_note}

Task: Write a comprehensive Executive Report for this specific project.
Structure:
1. **Executive Summary**: High-level overview of financial health.
2. **Strategic Analysis**: Industry-specific context (e.g., for {industry}).
3. **Key Achievements**: Highlight realized savings and security improvements.
4. **Recommendations**: Next steps for FinOps maturity.
"""


class ReportingAgent:
    """Generates the end-of-run report. Never raises to the pipeline."""

    def __init__(self, client: Optional[ReasoningClient]):
        self.client = client

    def generate_report(
        self,
        candidates: List[OptimizationCandidate],
        actions: List[PlannedAction],
        project_id: str,
        industry: str,
        log_callback: Optional[AgentLogCallback] = None,
    ) -> str:
        if log_callback:
            log_callback('thought', f"[Reporting] Generating Executive Analysis for {project_id}...")

        metrics = compute_report_metrics(candidates, actions)
        summary = format_metrics_summary(project_id, industry, metrics)

        if self.client is None:
            return summary

        try:
            narrative = self.client.generate_text(
                build_narrative_prompt(project_id, industry, metrics),
                system_text=REPORT_SYSTEM_TEXT,
            )
        except Exception as e:
            logger.warning(f"Report narrative generation failed: {e}")
            narrative = REPORT_FAILURE

        return f"{summary}\n\n{narrative or REPORT_FAILURE}"
