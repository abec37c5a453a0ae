from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from forecasta.services.context import BusinessContextStore, get_context_store

router = APIRouter(prefix="/business-context", tags=["business-context"])


class ContextWrite(BaseModel):
    website: str
    context: dict[str, Any] = {}
    merge: bool = False


@router.get("")
def get_context(
    website: Optional[str] = Query(default=None),
    summary: bool = Query(default=False),
    store: BusinessContextStore = Depends(get_context_store),
):
    if not website:
        return {"contexts": store.all(), "current": store.current()}

    ctx = store.get(website)
    if ctx is None:
        raise HTTPException(status_code=404, detail="Context not found")
    out = {"context": ctx}
    if summary:
        out["summary"] = store.summary(website)
    return out


@router.post("")
def write_context(body: ContextWrite, store: BusinessContextStore = Depends(get_context_store)):
    website = body.website.strip()
    if not website:
        raise HTTPException(status_code=400, detail="website is required")

    if body.merge:
        ctx = store.merge(website, body.context)
        if ctx is None:
            raise HTTPException(status_code=404, detail="Context not found")
    else:
        ctx = store.set(website, body.context)
    return {"context": ctx}


@router.delete("")
def delete_context(
    website: Optional[str] = Query(default=None),
    store: BusinessContextStore = Depends(get_context_store),
):
    if website:
        return {"cleared": store.clear(website)}
    store.clear_all()
    return {"cleared": True}
