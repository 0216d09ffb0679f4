"""
Org Chart Hierarchy.

Builds the reporting forest from the manager relation. Employees without
a manager, or whose manager is not in the data set, become roots. Sibling
order follows input order.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

from modules.directory.schemas.employee import Employee

logger = logging.getLogger(__name__)


@dataclass
class HierarchyNode:
    """One employee and their direct reports."""

    employee: Employee
    subordinates: list["HierarchyNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.employee.id

    def matches(self, term: str) -> bool:
        e = self.employee
        return any(
            term in value.lower()
            for value in (e.first_name, e.last_name, e.employee_number, e.role)
        )


def build_hierarchy_tree(employees: Iterable[Employee]) -> list[HierarchyNode]:
    """Return the root nodes of the reporting forest."""
    ordered = list(employees)
    nodes = {e.id: HierarchyNode(employee=e) for e in ordered}

    roots: list[HierarchyNode] = []
    for employee in ordered:
        node = nodes[employee.id]
        manager = nodes.get(employee.manager_id) if employee.manager_id else None
        if manager is not None and manager is not node:
            manager.subordinates.append(node)
        else:
            roots.append(node)
    return roots


def filter_hierarchy(nodes: list[HierarchyNode], term: str) -> list[HierarchyNode]:
    """
    Keep nodes that match ``term`` or have a matching descendant.

    Matching is case-insensitive on first name, last name, employee number
    and role. Non-matching descendants are pruned; the input is not mutated.
    """
    needle = term.lower()
    if not needle:
        return nodes

    kept: list[HierarchyNode] = []
    for node in nodes:
        children = filter_hierarchy(node.subordinates, needle)
        if node.matches(needle) or children:
            kept.append(HierarchyNode(employee=node.employee, subordinates=children))
    return kept


def iter_node_ids(nodes: list[HierarchyNode]) -> Iterable[str]:
    for node in nodes:
        yield node.id
        yield from iter_node_ids(node.subordinates)


class ExpansionState:
    """Which org chart nodes are expanded."""

    def __init__(self) -> None:
        self._expanded: set[str] = set()

    def toggle(self, node_id: str) -> bool:
        """Flip one node; returns the new state."""
        if node_id in self._expanded:
            self._expanded.discard(node_id)
            return False
        self._expanded.add(node_id)
        return True

    def expand_all(self, tree: list[HierarchyNode]) -> None:
        """Expand every node of ``tree`` (and only those)."""
        self._expanded = set(iter_node_ids(tree))

    def collapse_all(self) -> None:
        self._expanded = set()

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self._expanded

    @property
    def expanded_ids(self) -> frozenset[str]:
        return frozenset(self._expanded)


class HierarchyService:
    """
    Org chart view: tree building plus per-user expansion state.

    Expansion state lives in memory for the process lifetime.
    """

    def __init__(self) -> None:
        self._states: dict[str, ExpansionState] = {}
        self._lock = threading.Lock()

    def expansion_for(self, user_id: str) -> ExpansionState:
        with self._lock:
            state = self._states.get(user_id)
            if state is None:
                state = self._states[user_id] = ExpansionState()
            return state

    @staticmethod
    def build(employees: Iterable[Employee], search: Optional[str] = None) -> list[HierarchyNode]:
        """Tree ordered by first name, optionally filtered."""
        ordered = sorted(employees, key=lambda e: e.first_name.casefold())
        roots = build_hierarchy_tree(ordered)
        if search:
            roots = filter_hierarchy(roots, search)
        return roots


_hierarchy_service: Optional[HierarchyService] = None


def get_hierarchy_service() -> HierarchyService:
    """Get singleton HierarchyService instance."""
    global _hierarchy_service
    if _hierarchy_service is None:
        _hierarchy_service = HierarchyService()
    return _hierarchy_service
