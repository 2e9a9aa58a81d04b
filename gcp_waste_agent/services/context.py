"""
Vendor-neutral resource context handed to the reasoning service.

Only this projection leaves the process; raw inventory records do not.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List

from .models import OptimizationCandidate, ResourceType


RESOURCE_MIME_TYPE = "application/vnd.google.cloud.resource+json"


@dataclass(frozen=True)
class ResourceContext:
    uri: str
    mime_type: str
    name: str
    metadata: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'uri': self.uri,
            'mimeType': self.mime_type,
            'name': self.name,
            'metadata': self.metadata,
        }


def resource_uri(candidate: OptimizationCandidate) -> str:
    """Stable key of the form gcp://resources/<resource-type>/<resource-name>."""
    return f"gcp://resources/{candidate.resource_type.value.lower()}/{candidate.resource_name}"


def to_context(candidates: List[OptimizationCandidate]) -> List[ResourceContext]:
    contexts = []
    for candidate in candidates:
        # Only plain VM findings carry a usage signal; GPU hosts report 0
        usage = 0
        if candidate.resource_type == ResourceType.VM:
            usage = candidate.raw_data.cpu_7day_avg or 0

        contexts.append(ResourceContext(
            uri=resource_uri(candidate),
            mime_type=RESOURCE_MIME_TYPE,
            name=candidate.resource_name,
            metadata={
                'cost': candidate.potential_savings,
                'usage_7d': usage,
                'tags': dict(candidate.labels or {}),
                'state': candidate.reason.value,
                'spec': candidate.resource_type.value,
            },
        ))
    return contexts


def serialize_context(contexts: List[ResourceContext]) -> str:
    return json.dumps([c.to_dict() for c in contexts], indent=2)
