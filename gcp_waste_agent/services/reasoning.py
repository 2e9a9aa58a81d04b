"""
Optimization reasoning agent.

Runs a bounded tool-calling negotiation with a reasoning service: the service
is offered a fixed set of typed action schemas, and every call it makes is
turned into a pending PlannedAction and acknowledged as queued.
"""
import logging
import math
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .context import ResourceContext, serialize_context
from .models import ActionDetails, ActionType, PlannedAction
from ..core.exceptions import ReasoningError


logger = logging.getLogger(__name__)

AgentLogCallback = Callable[[str, str], None]

MAX_LOOPS = 8
DEFAULT_CONFIDENCE = 50
DEFAULT_REASONING = "Automated finding"
DEFAULT_MODEL_ID = "amazon.nova-pro-v1:0"

# GCP resource names: lowercase RFC 1035 labels
RESOURCE_NAME_PATTERN = re.compile(r"[a-z](?:[-a-z0-9]*[a-z0-9])?")
MAX_RESOURCE_NAME_LENGTH = 63


# ==============================================================================
# Action schemas
# ==============================================================================

@dataclass(frozen=True)
class ActionSchema:
    """A typed action the reasoning service may request."""
    name: str
    description: str
    action_type: ActionType
    target_field: str
    location_field: str
    extra_fields: Tuple[str, ...] = ()

    def input_schema(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {self.target_field: {'type': 'string'}}
        for extra in self.extra_fields:
            properties[extra] = {'type': 'string'}
        properties[self.location_field] = {'type': 'string'}
        properties['confidence_score'] = {'type': 'integer', 'minimum': 0, 'maximum': 100}
        properties['reasoning'] = {'type': 'string'}

        return {
            'type': 'object',
            'properties': properties,
            'required': list(properties.keys()),
        }


ACTION_SCHEMAS: Tuple[ActionSchema, ...] = (
    ActionSchema(
        name='plan_shutdown_vm',
        description='Propose stopping an idle VM instance.',
        action_type=ActionType.STOP_VM,
        target_field='instance_name',
        location_field='zone',
    ),
    ActionSchema(
        name='plan_rightsize_vm',
        description='Propose downsizing a VM machine type.',
        action_type=ActionType.RIGHTSIZE_VM,
        target_field='instance_name',
        location_field='zone',
        extra_fields=('current_type', 'new_type'),
    ),
    ActionSchema(
        name='plan_delete_disk',
        description='Propose deleting an orphaned disk.',
        action_type=ActionType.DELETE_DISK,
        target_field='disk_name',
        location_field='zone',
    ),
    ActionSchema(
        name='plan_delete_sql',
        description='Propose deleting an idle Cloud SQL database instance.',
        action_type=ActionType.DELETE_SQL,
        target_field='instance_name',
        location_field='region',
    ),
    ActionSchema(
        name='plan_delete_run',
        description='Propose deleting an unused Cloud Run service.',
        action_type=ActionType.DELETE_RUN,
        target_field='service_name',
        location_field='region',
    ),
)


# ==============================================================================
# Conversation protocol
# ==============================================================================

@dataclass
class ToolCall:
    call_id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class ToolAcknowledgement:
    call_id: str
    name: str
    result: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.result.get('status') == 'queued'


@dataclass
class ConversationTurn:
    """One message in the negotiation history."""
    role: str                        # 'user' or 'assistant'
    text: str = ''
    tool_calls: List[ToolCall] = field(default_factory=list)
    acknowledgements: List[ToolAcknowledgement] = field(default_factory=list)


@dataclass
class ReasoningResponse:
    text: str = ''
    tool_calls: List[ToolCall] = field(default_factory=list)


class ReasoningClient(ABC):
    """Stateless transport to a reasoning service.

    The caller owns the conversation history and passes it in full on every
    request; clients keep no hidden chat state.
    """

    @abstractmethod
    def send(
        self,
        schemas: Sequence[ActionSchema],
        system_text: str,
        history: Sequence[ConversationTurn],
    ) -> ReasoningResponse:
        """Send the conversation and return the service's next turn.

        Raises:
            ReasoningError: On transport or protocol failure
        """
        pass

    @abstractmethod
    def generate_text(self, prompt: str, system_text: Optional[str] = None) -> str:
        """Single-shot text generation without tools."""
        pass

    @abstractmethod
    def describe_image(self, prompt: str, image_bytes: bytes, image_format: str) -> str:
        """Single-shot text generation about an image."""
        pass


class BedrockReasoningClient(ReasoningClient):
    """Reasoning client backed by the Amazon Bedrock Converse API."""

    def __init__(
        self,
        session: Optional[boto3.Session] = None,
        region: str = 'us-east-1',
        model_id: str = DEFAULT_MODEL_ID,
        temperature: float = 0.1,
        max_tokens: int = 2048,
    ):
        self.session = session or boto3.Session()
        self.region = region
        self.model_id = model_id
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = None

    @property
    def client(self):
        """Lazy-loaded bedrock-runtime client."""
        if self._client is None:
            self._client = self.session.client('bedrock-runtime', region_name=self.region)
        return self._client

    def send(self, schemas, system_text, history) -> ReasoningResponse:
        kwargs = {
            'modelId': self.model_id,
            'messages': [self._to_message(turn) for turn in history],
            'system': [{'text': system_text}],
            'inferenceConfig': {'maxTokens': self.max_tokens, 'temperature': self.temperature},
            'toolConfig': {
                'tools': [
                    {
                        'toolSpec': {
                            'name': schema.name,
                            'description': schema.description,
                            'inputSchema': {'json': schema.input_schema()},
                        }
                    }
                    for schema in schemas
                ]
            },
        }
        response = self._converse(kwargs)
        return self._parse_response(response)

    def generate_text(self, prompt: str, system_text: Optional[str] = None) -> str:
        kwargs = {
            'modelId': self.model_id,
            'messages': [{'role': 'user', 'content': [{'text': prompt}]}],
            'inferenceConfig': {'maxTokens': self.max_tokens, 'temperature': self.temperature},
        }
        if system_text:
            kwargs['system'] = [{'text': system_text}]
        return self._parse_response(self._converse(kwargs)).text

    def describe_image(self, prompt: str, image_bytes: bytes, image_format: str) -> str:
        kwargs = {
            'modelId': self.model_id,
            'messages': [{
                'role': 'user',
                'content': [
                    {'text': prompt},
                    {'image': {'format': image_format, 'source': {'bytes': image_bytes}}},
                ],
            }],
            'inferenceConfig': {'maxTokens': self.max_tokens, 'temperature': self.temperature},
        }
        return self._parse_response(self._converse(kwargs)).text

    def _converse(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return self.client.converse(**kwargs)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise ReasoningError(f"Bedrock converse failed: {error_code}", details=str(e))
        except BotoCoreError as e:
            raise ReasoningError(f"Bedrock transport error: {e}", details=str(e))

    @staticmethod
    def _to_message(turn: ConversationTurn) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = []
        if turn.text:
            content.append({'text': turn.text})
        for call in turn.tool_calls:
            content.append({'toolUse': {'toolUseId': call.call_id, 'name': call.name, 'input': call.arguments}})
        for ack in turn.acknowledgements:
            content.append({
                'toolResult': {
                    'toolUseId': ack.call_id,
                    'content': [{'json': {'result': ack.result}}],
                    'status': 'success' if ack.ok else 'error',
                }
            })
        return {'role': turn.role, 'content': content}

    @staticmethod
    def _parse_response(response: Dict[str, Any]) -> ReasoningResponse:
        try:
            blocks = response['output']['message'].get('content', [])
        except (KeyError, TypeError, AttributeError) as e:
            raise ReasoningError(f"Malformed converse response: missing {e}")

        texts = []
        calls = []
        for block in blocks:
            if 'text' in block:
                texts.append(block['text'])
            elif 'toolUse' in block:
                tool_use = block['toolUse']
                calls.append(ToolCall(
                    call_id=tool_use.get('toolUseId') or str(uuid.uuid4()),
                    name=tool_use.get('name', ''),
                    arguments=tool_use.get('input') or {},
                ))
        return ReasoningResponse(text=''.join(texts).strip(), tool_calls=calls)


# ==============================================================================
# Negotiation loop
# ==============================================================================

def build_system_guidance(user_intent: str, visual_analysis: str = '') -> str:
    return f"""You are the GCP Optimization Reasoning Agent.

**Mission**: Identify waste and propose remediation.
**Criteria**:
- Idle VM -> plan_shutdown_vm
- Over-provisioned VM -> plan_rightsize_vm
- Orphaned Disk -> plan_delete_disk
- Idle Database -> plan_delete_sql
- Unused Service -> plan_delete_run

**User Intent**: {user_intent}
**Vision Context**: {visual_analysis or 'None provided.'}

**Safety**:
- NEVER propose deleting a database unless confidence_score is 95 or higher.
- Prefer rightsizing over deletion for any VM with usage above 0%.
"""


def build_initial_message(contexts: List[ResourceContext]) -> str:
    return f"[MCP Context]\n{serialize_context(contexts)}\n\nEvaluate and act."


def _null_log(kind: str, content: str) -> None:
    pass


def is_valid_resource_name(name: Any) -> bool:
    """Check that a name is safe to place in a gcloud command line."""
    return (
        isinstance(name, str)
        and len(name) <= MAX_RESOURCE_NAME_LENGTH
        and RESOURCE_NAME_PATTERN.fullmatch(name) is not None
    )


def _coerce_confidence(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_CONFIDENCE
    if not math.isfinite(number):
        return DEFAULT_CONFIDENCE
    score = int(number)
    return max(0, min(100, score))


class OptimizationAgent:
    """Negotiates remediation plans with a reasoning service."""

    def __init__(
        self,
        client: Optional[ReasoningClient],
        schemas: Sequence[ActionSchema] = ACTION_SCHEMAS,
        max_loops: int = MAX_LOOPS,
    ):
        self.client = client
        self.schemas = tuple(schemas)
        self.max_loops = max_loops
        self._schemas_by_name = {schema.name: schema for schema in self.schemas}
        self.history: List[ConversationTurn] = []

    def run(
        self,
        contexts: List[ResourceContext],
        user_intent: str,
        visual_analysis: str = '',
        log_callback: Optional[AgentLogCallback] = None,
    ) -> List[PlannedAction]:
        """Run the negotiation and return the extracted pending actions.

        Never raises: transport or protocol failures are logged and yield an
        empty list so the pipeline can continue to a "no actions" outcome.
        """
        log = log_callback or _null_log
        self.history = []

        if not contexts:
            log('thought', "[Reasoning] No resources to evaluate.")
            return []

        if self.client is None:
            logger.warning("No reasoning client configured; skipping negotiation")
            log('final', "Reasoning unavailable: no reasoning service configured.")
            return []

        system_text = build_system_guidance(user_intent, visual_analysis)
        self.history.append(ConversationTurn(role='user', text=build_initial_message(contexts)))
        log('thought', f"[Reasoning] Loaded {len(contexts)} resources...")

        planned_actions: List[PlannedAction] = []
        loop_count = 0

        try:
            response = self._send(system_text)

            while response.tool_calls:
                loop_count += 1
                if loop_count > self.max_loops:
                    logger.warning(f"Negotiation stopped after {self.max_loops} turns")
                    log('thought', f"[Reasoning] Turn limit of {self.max_loops} reached.")
                    break

                acknowledgements = []
                for call in response.tool_calls:
                    action, ack = self._handle_call(call, log)
                    if action is not None:
                        planned_actions.append(action)
                    acknowledgements.append(ack)

                self.history.append(ConversationTurn(role='user', acknowledgements=acknowledgements))
                response = self._send(system_text)

            if response.text:
                log('final', response.text)
            return planned_actions

        except Exception as e:
            logger.error(f"Reasoning agent failed: {e}")
            log('final', f"Reasoning Error: {e}")
            return []

    @property
    def reply_count(self) -> int:
        """Number of acknowledgement messages sent in the last run."""
        return sum(1 for turn in self.history if turn.acknowledgements)

    def _send(self, system_text: str) -> ReasoningResponse:
        response = self.client.send(self.schemas, system_text, list(self.history))
        self.history.append(ConversationTurn(
            role='assistant', text=response.text, tool_calls=list(response.tool_calls)
        ))
        return response

    def _handle_call(self, call: ToolCall, log: AgentLogCallback) -> Tuple[Optional[PlannedAction], ToolAcknowledgement]:
        schema = self._schemas_by_name.get(call.name)
        if schema is None:
            logger.warning(f"Reasoning service requested unknown action '{call.name}'")
            return None, ToolAcknowledgement(
                call.call_id, call.name, {'status': 'error', 'message': f"Unknown action '{call.name}'"}
            )

        args = call.arguments or {}
        target = str(args.get(schema.target_field) or '').strip()
        if not target:
            logger.warning(f"{call.name} call is missing '{schema.target_field}'")
            return None, ToolAcknowledgement(
                call.call_id, call.name, {'status': 'error', 'message': f"Missing '{schema.target_field}'"}
            )

        location = str(args.get(schema.location_field) or args.get('zone') or args.get('region') or 'global').strip()
        checked = [target, location]
        if schema.action_type == ActionType.RIGHTSIZE_VM and args.get('new_type'):
            checked.append(args['new_type'])
        invalid = [value for value in checked if not is_valid_resource_name(value)]
        if invalid:
            logger.warning(f"{call.name} call rejected: invalid resource name {invalid[0]!r}")
            return None, ToolAcknowledgement(
                call.call_id, call.name, {'status': 'error', 'message': f"Invalid resource name '{invalid[0]}'"}
            )

        details = None
        if schema.action_type == ActionType.RIGHTSIZE_VM:
            details = ActionDetails(from_type=args.get('current_type'), to_type=args.get('new_type'))

        action = PlannedAction(
            id=str(uuid.uuid4()),
            type=schema.action_type,
            target=target,
            zone=location,
            confidence=_coerce_confidence(args.get('confidence_score')),
            reasoning=args.get('reasoning') or DEFAULT_REASONING,
            details=details,
        )

        log('tool_call', f"Tool: {call.name} -> {target}")
        return action, ToolAcknowledgement(call.call_id, call.name, {'status': 'queued'})
