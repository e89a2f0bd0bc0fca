"""Text rendering for branch listings, health reports and aggregated views."""

from rich.text import Text
from rich.tree import Tree

from specstack.cli.output import render_rich, styled_status
from specstack.core.aggregation import AggregatedView, RepoSummary
from specstack.core.branch_store.types import BranchEntry
from specstack.core.graph import Chain
from specstack.core.health import HealthReport


def format_counts(status_counts: dict[str, int]) -> str:
    """e.g. "1 active, 1 merged"."""
    if not status_counts:
        return "no branches"
    return ", ".join(f"{n} {status}" for status, n in status_counts.items())


def format_chain(chain: Chain) -> str:
    return " → ".join((chain.base, *chain.branches))


def format_entry_line(entry: BranchEntry, styled: bool = True) -> str:
    status = styled_status(entry.status) if styled else entry.status.value
    line = f"{entry.name} ({status})"
    if entry.pull_request_ref:
        ref = entry.pull_request_ref
        line += f" PR {'#' + ref if ref.isdigit() else ref}"
    line += f"  base: {entry.base_branch}"
    return line


def render_list_lines(entries: list[BranchEntry], chains: list[Chain]) -> list[str]:
    """Per spec: its chains, then one detail line per entry."""
    lines: list[str] = []
    for spec_id in dict.fromkeys(c.spec_id for c in chains):
        if lines:
            lines.append("")
        lines.append(f"Spec: {spec_id}")
        for chain in chains:
            if chain.spec_id == spec_id:
                lines.append(f"  {format_chain(chain)}")
        for entry in entries:
            if entry.spec_id == spec_id:
                lines.append(f"    {format_entry_line(entry)}")
    return lines


def render_status_lines(entries: tuple[BranchEntry, ...], report: HealthReport) -> list[str]:
    lines = [f"Branch Stack Status ({report.repo_root})", ""]
    for entry in entries:
        lines.append(format_entry_line(entry))
        for warning in report.for_branch(entry.name):
            lines.append(f"  ⚠ {warning.message}")
            if warning.suggestion:
                lines.append(f"    → {warning.suggestion}")
    general = report.for_branch(None)
    if general:
        lines.append("")
        for warning in general:
            lines.append(f"⚠ {warning.message}")
    if not report.warnings:
        lines.append("")
        lines.append("All branches healthy.")
    return lines


def _summary_node(parent: Tree, label: str, summary: RepoSummary, show_health: bool) -> None:
    header = Text(f"{label}: {summary.branch_count} branch(es) ({format_counts(summary.status_counts)})")
    node = parent.add(header)
    for chain in summary.chains:
        node.add(Text(f"[{chain.spec_id}] {format_chain(chain)}"))
    if show_health and summary.health is not None:
        for warning in summary.health.warnings:
            node.add(Text(f"⚠ {warning.message}"))


def render_aggregated(view: AggregatedView, show_health: bool = False) -> str:
    tree = Tree(Text("Branch Stack Status (Multi-Repo)"))
    if view.root is not None:
        spec_label = ", ".join(view.root.spec_ids) or "no specs"
        _summary_node(tree, f"Root ({spec_label})", view.root, show_health)
    for name, summary in view.children.items():
        label = f"Child: {name}"
        if summary.parent_spec_id is not None:
            label += f" (parent spec {summary.parent_spec_id})"
        _summary_node(tree, label, summary, show_health)
    for failure in view.failures:
        first_line = (failure.error.splitlines() or ["unknown error"])[0]
        tree.add(Text(f"✗ {failure.name}: {first_line}"))
    return render_rich(tree)
