from fastapi import APIRouter, HTTPException
from ..services.app_state import get_app_state
from ..services.models import WorkspaceSnapshot

router = APIRouter()


@router.get("/workspace/{workspace_id}", response_model=WorkspaceSnapshot)
async def load_workspace(workspace_id: str):
    snapshot = get_app_state().workspaces.load(workspace_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return snapshot


@router.put("/workspace/{workspace_id}", response_model=WorkspaceSnapshot)
async def save_workspace(workspace_id: str, payload: WorkspaceSnapshot):
    return get_app_state().workspaces.save(workspace_id, payload)


@router.delete("/workspace/{workspace_id}")
async def delete_workspace(workspace_id: str):
    if not get_app_state().workspaces.delete(workspace_id):
        raise HTTPException(status_code=404, detail="Workspace not found")
    return {"success": True}
