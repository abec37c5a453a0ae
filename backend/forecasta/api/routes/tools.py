from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from forecasta.core.errors import ServiceUnavailable
from forecasta.services.agents.dispatch import dispatch_tool
from forecasta.services.agents.registry import ToolKind
from forecasta.services.llm import LLMClient, get_llm

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("")
def list_tools():
    return {"tools": [k.value for k in ToolKind]}


@router.post("/{tool}")
def run_tool(tool: ToolKind, payload: dict[str, Any], llm: LLMClient = Depends(get_llm)):
    try:
        return dispatch_tool(tool, payload, llm)
    except ValidationError as e:
        msg = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise HTTPException(status_code=400, detail=msg)
    except ServiceUnavailable:
        raise
    except Exception as e:
        logger.error("tool_failed", tool=tool.value, error=str(e))
        raise HTTPException(status_code=500, detail={"error": f"Failed to run {tool.value}", "details": str(e)})
