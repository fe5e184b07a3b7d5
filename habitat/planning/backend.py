"""Inference backend: prompt rendering, HTTP call, and plan parsing.

Talks to an Ollama-compatible ``/api/generate`` endpoint. The model is
asked for a strict JSON object with ``messages_to``, ``actions`` and
``explain``; anything around that object is ignored.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Protocol

import requests

from habitat.core.models import AgentPlan, OutboundMessage, ProposedAction

if TYPE_CHECKING:
    from habitat.config import InferenceConfig
    from habitat.core.context import PlanningContext

logger = logging.getLogger(__name__)

INFERENCE_SOURCE = "inference"

SYSTEM_PROMPT = (
    "You are a device agent in a smart environment. "
    "Output strict JSON with keys: messages_to[], actions[], explain. "
    "Never output non-JSON. Respect constraints & policies. "
    "Coordinate with other devices for optimal outcomes."
)


class InferenceError(RuntimeError):
    def __init__(self, message: str, *, error_code: str, model_name: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.model_name = model_name


class InferenceUnavailableError(InferenceError):
    """Network failure, timeout or non-success HTTP status."""


class InferenceResponseError(InferenceError):
    """The backend answered but the body is not usable."""


class InferenceBackend(Protocol):
    def generate(self, context: PlanningContext) -> AgentPlan: ...


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the first balanced ``{...}`` object in *text*, or None.

    String literals and escapes are honoured so braces inside strings do
    not confuse the scan.
    """
    candidate = str(text or "").strip()
    if not candidate:
        return None

    try:
        parsed = json.loads(candidate)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    in_string = False
    escape = False
    depth = 0
    start = None
    for idx, char in enumerate(candidate):
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
            continue
        if char == "{":
            if depth == 0:
                start = idx
            depth += 1
            continue
        if char == "}":
            if depth <= 0:
                continue
            depth -= 1
            if depth == 0 and start is not None:
                blob = candidate[start: idx + 1]
                try:
                    parsed = json.loads(blob)
                except ValueError:
                    start = None
                    continue
                if isinstance(parsed, dict):
                    return parsed
                start = None
    return None


def parse_plan(text: str) -> AgentPlan:
    """Turn raw model text into an AgentPlan; never raises.

    No JSON object yields an empty plan. Missing or malformed fields fall
    back to empty lists and a default rationale.
    """
    payload = extract_json_object(text)
    if payload is None:
        return AgentPlan(rationale="No valid plan in model output", source=INFERENCE_SOURCE)

    actions: list[ProposedAction] = []
    raw_actions = payload.get("actions")
    for item in raw_actions if isinstance(raw_actions, list) else []:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        args = item.get("args")
        actions.append(ProposedAction(name=name.strip(), args=dict(args) if isinstance(args, dict) else {}))

    messages: list[OutboundMessage] = []
    raw_messages = payload.get("messages_to")
    for item in raw_messages if isinstance(raw_messages, list) else []:
        if not isinstance(item, dict):
            continue
        to = item.get("to")
        content = item.get("content")
        if isinstance(to, str) and to and content is not None:
            messages.append(OutboundMessage(to=to, content=str(content)))

    explain = payload.get("explain")
    return AgentPlan(
        actions=tuple(actions),
        messages=tuple(messages),
        rationale=explain if isinstance(explain, str) and explain else "No explanation provided",
        source=INFERENCE_SOURCE,
    )


def render_prompt(context: PlanningContext) -> str:
    """Render the planning context as the user prompt."""
    capability = context.capability
    lines = [
        f"Device: {context.agent_id} ({capability.agent_type}) in {context.room_id}",
        f"Status: {context.status.label}",
        f"Available actions: {', '.join(capability.actions) or 'none'}",
        "Goals: " + ", ".join(f"{name}={weight:.2f}" for name, weight in capability.goals),
        f"Room: {json.dumps(context.room.as_dict(), sort_keys=True)}",
        f"World time (s): {context.world_time:.0f}",
        "Policy priority: " + " > ".join(context.policies.priority_order),
        f"Quiet hours: {context.policies.quiet_hours.start}-{context.policies.quiet_hours.end}",
    ]
    if context.messages:
        lines.append("Recent messages:")
        lines.extend(f"  - from {m.sender}: {m.content}" for m in context.messages)
    if context.siblings:
        lines.append("Other devices:")
        lines.extend(f"  - {s.id} in {s.room} ({s.status.label})" for s in context.siblings)
    lines.append(
        'Respond with JSON: {"messages_to": [{"to": "...", "content": "..."}], '
        '"actions": [{"name": "...", "args": {}}], "explain": "..."}'
    )
    return "\n".join(lines)


class OllamaBackend:
    """Blocking HTTP client for ``POST {host}/api/generate``.

    Called concurrently from scheduler worker threads.
    """

    def __init__(self, config: InferenceConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self.total_calls = 0
        self.failed_calls = 0
        self.total_latency = 0.0

    @property
    def model_name(self) -> str:
        return self._config.model

    @property
    def average_latency(self) -> float:
        succeeded = self.total_calls - self.failed_calls
        return self.total_latency / succeeded if succeeded > 0 else 0.0

    def build_payload(self, context: PlanningContext) -> dict[str, Any]:
        cfg = self._config
        return {
            "model": cfg.model,
            "prompt": render_prompt(context),
            "system": SYSTEM_PROMPT,
            "stream": False,
            "options": {
                "temperature": cfg.temperature,
                "top_p": cfg.top_p,
                "num_predict": cfg.max_output_tokens,
            },
        }

    def generate(self, context: PlanningContext) -> AgentPlan:
        url = f"{self._config.host}/api/generate"
        with self._lock:
            self.total_calls += 1
        started = time.perf_counter()
        try:
            response = self._session.post(
                url, json=self.build_payload(context), timeout=self._config.timeout_seconds,
            )
        except requests.Timeout as exc:
            self._record_failure()
            raise InferenceUnavailableError(
                f"Inference timed out after {self._config.timeout_seconds:.0f}s",
                error_code="timeout", model_name=self.model_name,
            ) from exc
        except requests.RequestException as exc:
            self._record_failure()
            raise InferenceUnavailableError(
                f"Inference request failed: {exc}", error_code="network", model_name=self.model_name,
            ) from exc

        if response.status_code >= 400:
            self._record_failure()
            raise InferenceUnavailableError(
                f"Inference backend returned HTTP {response.status_code}",
                error_code="http_status", model_name=self.model_name,
            )

        try:
            body = response.json()
        except ValueError as exc:
            self._record_failure()
            raise InferenceResponseError(
                "Inference backend returned a non-JSON body", error_code="malformed_body",
                model_name=self.model_name,
            ) from exc
        if not isinstance(body, dict) or not isinstance(body.get("response"), str):
            self._record_failure()
            raise InferenceResponseError(
                "Inference backend body has no 'response' text", error_code="missing_response",
                model_name=self.model_name,
            )

        elapsed = time.perf_counter() - started
        with self._lock:
            self.total_latency += elapsed
        plan = parse_plan(body["response"])
        logger.debug("Inference for %s: %d actions, %d messages",
                     context.agent_id, len(plan.actions), len(plan.messages))
        return plan

    def _record_failure(self) -> None:
        with self._lock:
            self.failed_calls += 1
