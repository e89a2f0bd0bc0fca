"""Dependency graph over tracked branches.

Entries live in an arena indexed by position; each edge points from a branch to
its base. Bases that are not tracked (the trunk, or any untracked branch) get
one virtual node each so every edge has a target index.

Each node has at most one outgoing edge, but cycle detection still uses a
three-color DFS so the reported path always starts at the node being checked.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from specstack.core.branch_store.types import BranchEntry, BranchMapping, BranchStatus
from specstack.core.errors import CycleError, GitAdapterError
from specstack.core.git.abc import Git

logger = logging.getLogger(__name__)

_WHITE, _GRAY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class BranchGraph:
    """Arena representation of a mapping.

    Attributes:
        names: Node names; tracked entries first, then virtual external bases
        entries: Tracked entries, aligned with the first len(entries) names
        base_of: Index of each tracked node's base node
        children: Reverse edges for every node (tracked and virtual)
    """

    names: tuple[str, ...]
    entries: tuple[BranchEntry, ...]
    base_of: tuple[int, ...]
    children: tuple[tuple[int, ...], ...]

    def index_of(self, name: str) -> int | None:
        try:
            return self.names.index(name)
        except ValueError:
            return None

    def is_tracked(self, index: int) -> bool:
        return index < len(self.entries)


@dataclass(frozen=True)
class Chain:
    """One root-to-leaf path through a spec's branches.

    `base` is the untracked (or other-spec) branch the root is stacked on.
    """

    spec_id: str
    base: str
    branches: tuple[str, ...]


def build_graph(mapping: BranchMapping) -> BranchGraph:
    entries = mapping.branches
    names: list[str] = [e.name for e in entries]
    index = {name: i for i, name in enumerate(names)}

    base_of: list[int] = []
    for entry in entries:
        if entry.base_branch not in index:
            index[entry.base_branch] = len(names)
            names.append(entry.base_branch)
        base_of.append(index[entry.base_branch])

    children: list[list[int]] = [[] for _ in names]
    for child, base in enumerate(base_of):
        children[base].append(child)

    return BranchGraph(
        names=tuple(names),
        entries=entries,
        base_of=tuple(base_of),
        children=tuple(tuple(c) for c in children),
    )


def find_cycle(graph: BranchGraph, start: int | None = None) -> list[str] | None:
    """Find a cycle reachable from `start`, or anywhere when start is None.

    Returns the ordered cycle with the first node repeated at the end,
    e.g. ["A", "C", "B", "A"].
    """
    color = [_WHITE] * len(graph.names)
    roots = [start] if start is not None else range(len(graph.entries))

    for root in roots:
        if color[root] != _WHITE:
            continue
        stack: list[int] = []
        node: int | None = root
        while node is not None:
            if color[node] == _GRAY:
                cycle_start = stack.index(node)
                return [graph.names[i] for i in stack[cycle_start:]] + [graph.names[node]]
            if color[node] == _BLACK:
                break
            color[node] = _GRAY
            stack.append(node)
            node = graph.base_of[node] if graph.is_tracked(node) else None
        for visited in stack:
            color[visited] = _BLACK
    return None


def _format_cycle(path: list[str]) -> str:
    return " → ".join(path)


def validate_acyclic(mapping: BranchMapping) -> None:
    cycle = find_cycle(build_graph(mapping))
    if cycle is not None:
        raise CycleError(f"Branch dependencies form a cycle: {_format_cycle(cycle)}", cycle)


def check_base_change(mapping: BranchMapping, name: str, new_base: str) -> None:
    """Reject setting `name`'s base to `new_base` if it would create a cycle.

    `name` need not be tracked yet; in that case the check treats it as a new
    entry stacked on `new_base`.

    Raises:
        CycleError: With the cycle path starting at `name`
    """
    if name == new_base:
        raise CycleError(f"Branch '{name}' cannot use itself as its base", [name, name])

    existing = [e for e in mapping.branches if e.name == name]
    if existing:
        branches = tuple(
            replace(e, base_branch=new_base) if e.name == name else e for e in mapping.branches
        )
    else:
        placeholder = BranchEntry(
            name=name,
            base_branch=new_base,
            spec_id="000-placeholder",
            status=BranchStatus.ACTIVE,
            created_at="",
            updated_at="",
        )
        branches = (*mapping.branches, placeholder)

    graph = build_graph(replace(mapping, branches=branches))
    start = graph.index_of(name)
    cycle = find_cycle(graph, start)
    if cycle is not None:
        raise CycleError(
            f"Setting the base of '{name}' to '{new_base}' would create a cycle: "
            f"{_format_cycle(cycle)}\n"
            f"Choose a base that does not depend on '{name}'.",
            cycle,
        )


def dependents_of(mapping: BranchMapping, name: str) -> list[str]:
    """Direct children of `name` (entries whose base is `name`)."""
    return [e.name for e in mapping.branches if e.base_branch == name]


def compute_chains(mapping: BranchMapping, spec_id: str | None = None) -> list[Chain]:
    """Compute root-to-leaf chains per spec, in entry order.

    A root is an entry whose base is not an entry of the same spec. Every leaf
    yields exactly one chain.
    """
    graph = build_graph(mapping)
    spec_ids: list[str] = []
    for entry in mapping.branches:
        if entry.spec_id not in spec_ids:
            spec_ids.append(entry.spec_id)
    if spec_id is not None:
        spec_ids = [s for s in spec_ids if s == spec_id]

    chains: list[Chain] = []
    for current_spec in spec_ids:
        for i, entry in enumerate(graph.entries):
            if entry.spec_id != current_spec:
                continue
            base_index = graph.base_of[i]
            base_in_spec = (
                graph.is_tracked(base_index) and graph.entries[base_index].spec_id == current_spec
            )
            if base_in_spec:
                continue
            chains.extend(
                Chain(spec_id=current_spec, base=entry.base_branch, branches=path)
                for path in _walk_to_leaves(graph, i, current_spec)
            )
    return chains


def _walk_to_leaves(graph: BranchGraph, root: int, spec_id: str) -> list[tuple[str, ...]]:
    paths: list[tuple[str, ...]] = []
    stack: list[tuple[int, tuple[str, ...]]] = [(root, (graph.names[root],))]
    while stack:
        node, path = stack.pop()
        kids = [
            c for c in graph.children[node] if graph.entries[c].spec_id == spec_id
        ]
        if not kids:
            paths.append(path)
            continue
        # Reverse so children are visited in entry order
        for child in reversed(kids):
            stack.append((child, (*path, graph.names[child])))
    return paths


@dataclass(frozen=True)
class StalenessReport:
    """Branches whose base has already been merged into its own base.

    Attributes:
        needs_rebase: branch name -> merged base name
        warnings: Checks that could not be completed
    """

    needs_rebase: dict[str, str]
    warnings: list[str]


def find_stale_branches(git: Git, repo_root: Path, mapping: BranchMapping) -> StalenessReport:
    """Flag downstream entries of a base that is marked merged and has landed in git.

    Adapter failures are reported as warnings rather than raised.
    """
    by_name = {e.name: e for e in mapping.branches}
    merged_cache: dict[str, bool | None] = {}
    needs_rebase: dict[str, str] = {}
    warnings: list[str] = []

    for entry in mapping.branches:
        if entry.status.is_terminal:
            continue
        base_entry = by_name.get(entry.base_branch)
        if base_entry is None or base_entry.status is not BranchStatus.MERGED:
            continue
        if base_entry.name not in merged_cache:
            try:
                merged_cache[base_entry.name] = git.is_merged_into(
                    repo_root, base_entry.name, base_entry.base_branch
                )
            except GitAdapterError as e:
                logger.warning("Merge check failed for %s: %s", base_entry.name, e)
                warnings.append(
                    f"Could not check whether '{base_entry.name}' is merged into "
                    f"'{base_entry.base_branch}'"
                )
                merged_cache[base_entry.name] = None
        if merged_cache[base_entry.name]:
            needs_rebase[entry.name] = base_entry.name

    return StalenessReport(needs_rebase=needs_rebase, warnings=warnings)
