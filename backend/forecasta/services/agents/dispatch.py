from __future__ import annotations

import json
import re
import time
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from forecasta.metrics.prometheus import tool_dispatch_total
from forecasta.services.agents.registry import AGENTS, ToolKind
from forecasta.services.llm import LLMClient

logger = structlog.get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.S)


def _loads_object(text: str) -> Optional[dict[str, Any]]:
    try:
        obj = json.loads(text)
    except ValueError:
        m = _JSON_OBJECT.search(text or "")
        if not m:
            return None
        try:
            obj = json.loads(m.group(0))
        except ValueError:
            return None
    return obj if isinstance(obj, dict) else None


def parse_output(kind: ToolKind, text: str) -> tuple[dict[str, Any], bool]:
    """Validate the reply against the tool's output model, else wrap it as raw text."""
    obj = _loads_object(text)
    if obj is None:
        return {"raw": text}, False
    try:
        return AGENTS[kind].output_model.model_validate(obj).model_dump(), True
    except ValidationError:
        return {"raw": text}, False


def dispatch_tool(kind: ToolKind, payload: dict[str, Any], llm: LLMClient) -> dict[str, Any]:
    agent = AGENTS[kind]
    # raises ValidationError on bad input
    inp = agent.input_model.model_validate(payload)

    messages = [
        {"role": "system", "content": agent.system_prompt + " Respond only with a JSON object."},
        {"role": "user", "content": agent.build_message(inp)},
    ]

    start = time.perf_counter()
    text = llm.complete_json(messages, temperature=agent.temperature, max_tokens=agent.max_tokens)
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    output, parsed = parse_output(kind, text)
    tool_dispatch_total.labels(tool=kind.value, parsed=str(parsed).lower()).inc()
    if not parsed:
        logger.warning("tool_output_unparsed", tool=kind.value, chars=len(text or ""))
    logger.info("tool_dispatched", tool=kind.value, parsed=parsed, ms=elapsed_ms)

    return {
        "tool": kind.value,
        "parsed": parsed,
        "output": output,
        "metadata": {
            "model": llm.model,
            "business_name": inp.business_name,
            "business_type": inp.business_type,
            "execution_time_ms": elapsed_ms,
        },
    }
