from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..models import create_empty_notebook, utc_now_iso
from ..storage import NotebookUpdate, StorageBackend
from ..websocket.hub import CollaborationHub
from .deps import get_hub, get_storage_dependency

router = APIRouter()


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Notebook not found"})


@router.get("/{notebook_id}")
async def get_notebook(notebook_id: str, storage: StorageBackend = Depends(get_storage_dependency)):
    """Get a specific notebook."""
    notebook = await storage.load_notebook(notebook_id)
    if notebook is None:
        return _not_found()
    return {"data": notebook.to_wire()}


@router.put("/{notebook_id}")
async def save_notebook(
    notebook_id: str,
    update: NotebookUpdate,
    storage: StorageBackend = Depends(get_storage_dependency),
    hub: CollaborationHub = Depends(get_hub),
):
    """Save `{name, env, cells}`, creating the notebook if it does not exist yet."""
    existing = await storage.load_notebook(notebook_id)
    if existing is None:
        existing = create_empty_notebook(id=notebook_id)

    saved = existing.model_copy(update={
        "name": update.name.strip() or existing.name,
        "env": update.env,
        "cells": list(update.cells),
        "updated_at": utc_now_iso(),
    })
    await storage.save_notebook(saved)
    hub.refresh(saved)
    return {"data": saved.to_wire()}


@router.delete("/{notebook_id}")
async def delete_notebook(notebook_id: str, storage: StorageBackend = Depends(get_storage_dependency)):
    """Delete a notebook."""
    existing = await storage.load_notebook(notebook_id)
    if existing is None:
        return _not_found()
    await storage.delete_notebook(notebook_id)
    return {"data": existing.to_wire()}
