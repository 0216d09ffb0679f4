"""
Directory Module Services.

Contains business logic services for the directory module.

Services:
    - DirectoryService: Cache-first listing and offline-aware mutations
    - SyncEngine: Replays the pending-operation queue
    - ConnectivityMonitor: Online/offline signal for the remote store
    - HierarchyService: Org chart building and expansion state
"""

from modules.directory.services.cache import EmployeeCache
from modules.directory.services.connectivity import ConnectivityMonitor, ConnectivityStatus
from modules.directory.services.directory import (
    DirectoryService,
    EmployeeListResult,
    MutationResult,
    SortState,
    filter_and_sort,
    get_directory_service,
    set_directory_service,
    to_view,
)
from modules.directory.services.exceptions import (
    DirectoryError,
    DirectoryOperationError,
    EmployeeConflictError,
    EmployeeNotFoundError,
    EmployeeValidationError,
)
from modules.directory.services.gravatar import get_gravatar_url, initials
from modules.directory.services.hierarchy import (
    ExpansionState,
    HierarchyNode,
    HierarchyService,
    build_hierarchy_tree,
    filter_hierarchy,
    get_hierarchy_service,
)
from modules.directory.services.sync import SYNC_SUCCESS_MESSAGE, SyncEngine, SyncResult

__all__ = [
    # Directory
    "DirectoryService",
    "EmployeeListResult",
    "MutationResult",
    "SortState",
    "filter_and_sort",
    "get_directory_service",
    "set_directory_service",
    "to_view",
    # Cache / sync
    "EmployeeCache",
    "SyncEngine",
    "SyncResult",
    "SYNC_SUCCESS_MESSAGE",
    # Connectivity
    "ConnectivityMonitor",
    "ConnectivityStatus",
    # Hierarchy
    "ExpansionState",
    "HierarchyNode",
    "HierarchyService",
    "build_hierarchy_tree",
    "filter_hierarchy",
    "get_hierarchy_service",
    # Avatars
    "get_gravatar_url",
    "initials",
    # Exceptions
    "DirectoryError",
    "DirectoryOperationError",
    "EmployeeConflictError",
    "EmployeeNotFoundError",
    "EmployeeValidationError",
]
