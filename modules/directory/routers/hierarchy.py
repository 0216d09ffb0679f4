"""
Org Chart API Router.

The reporting forest built from the same cache-first listing as the
directory, plus per-user node expansion.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from core.api.auth import CurrentUser, UserBackendDep
from core.backend import BackendClient
from modules.directory.core.config import DirectorySettings, get_directory_settings
from modules.directory.schemas.employee import HierarchyNodeResponse, HierarchyResponse
from modules.directory.services.directory import DirectoryService, get_directory_service, to_view
from modules.directory.services.hierarchy import (
    ExpansionState,
    HierarchyNode,
    HierarchyService,
    get_hierarchy_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hierarchy", tags=["Hierarchy"])

DirectoryServiceDep = Annotated[DirectoryService, Depends(get_directory_service)]
HierarchyServiceDep = Annotated[HierarchyService, Depends(get_hierarchy_service)]
DirectorySettingsDep = Annotated[DirectorySettings, Depends(get_directory_settings)]


def _to_response(
    nodes: list[HierarchyNode],
    expansion: ExpansionState,
    settings: DirectorySettings,
) -> list[HierarchyNodeResponse]:
    return [
        HierarchyNodeResponse(
            employee=to_view(node.employee, settings.avatar_size_list, settings.avatar_default_image),
            subordinates=_to_response(node.subordinates, expansion, settings),
            expanded=expansion.is_expanded(node.id),
        )
        for node in nodes
    ]


async def _load_tree(
    backend: BackendClient,
    service: DirectoryService,
    hierarchy: HierarchyService,
    search: Optional[str],
) -> tuple[list[HierarchyNode], HierarchyResponse]:
    result = await service.fetch_employees(backend)
    roots = hierarchy.build(result.employees, search)
    skeleton = HierarchyResponse(
        roots=[],
        total=len(result.employees),
        source=result.source,
        online=service.monitor.is_online,
        notice=result.notice,
    )
    return roots, skeleton


@router.get("", response_model=HierarchyResponse)
async def get_hierarchy(
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
    hierarchy: HierarchyServiceDep,
    settings: DirectorySettingsDep,
    search: Annotated[Optional[str], Query(description="Filter by name, number or role")] = None,
) -> HierarchyResponse:
    """Org chart forest with the caller's expansion state."""
    roots, response = await _load_tree(backend, service, hierarchy, search)
    expansion = hierarchy.expansion_for(current_user.user.id)
    response.roots = _to_response(roots, expansion, settings)
    return response


@router.post("/expand-all", response_model=HierarchyResponse)
async def expand_all(
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
    hierarchy: HierarchyServiceDep,
    settings: DirectorySettingsDep,
    search: Annotated[Optional[str], Query()] = None,
) -> HierarchyResponse:
    """Expand every node of the (optionally filtered) tree."""
    roots, response = await _load_tree(backend, service, hierarchy, search)
    expansion = hierarchy.expansion_for(current_user.user.id)
    expansion.expand_all(roots)
    response.roots = _to_response(roots, expansion, settings)
    return response


@router.post("/collapse-all", response_model=HierarchyResponse)
async def collapse_all(
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
    hierarchy: HierarchyServiceDep,
    settings: DirectorySettingsDep,
    search: Annotated[Optional[str], Query()] = None,
) -> HierarchyResponse:
    """Collapse every node."""
    roots, response = await _load_tree(backend, service, hierarchy, search)
    expansion = hierarchy.expansion_for(current_user.user.id)
    expansion.collapse_all()
    response.roots = _to_response(roots, expansion, settings)
    return response


@router.post("/nodes/{employee_id}/toggle")
async def toggle_node(
    employee_id: str,
    current_user: CurrentUser,
    hierarchy: HierarchyServiceDep,
) -> dict[str, object]:
    """Flip one node's expansion."""
    expanded = hierarchy.expansion_for(current_user.user.id).toggle(employee_id)
    return {"id": employee_id, "expanded": expanded}
