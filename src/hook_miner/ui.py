from typing import Optional

from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from hook_miner.address import to_checksum
from hook_miner.flags import ALL_FLAGS_MASK, describe_flags
from hook_miner.models import (
    Cancelled,
    Found,
    InvalidMask,
    MiningProgress,
    MiningRequest,
    MiningResult,
    NotFound,
)
from hook_miner.state_queue import SingleSlotQueue


COLORS = {
    "label": "cyan",
    "value": "bold white",
    "found": "bold spring_green2",
    "not_found": "bold yellow",
    "error": "bold red",
}

# Expected candidates per match for a 14-bit exact mask.
EXPECTED_TRIALS = 1 << 14


def format_rate(rate: float) -> str:
    for factor, label in ((1e9, "G"), (1e6, "M"), (1e3, "k")):
        if rate >= factor:
            return f"{rate / factor:.2f}{label}"
    return f"{rate:.0f}"


def render(progress: Optional[MiningProgress], request: Optional[MiningRequest] = None):
    """Render the latest progress snapshot."""
    if progress is None:
        return Panel("Waiting for first update…", title="Salt Miner", border_style="dim")

    table = Table.grid(padding=(0, 2))
    table.add_column(style=COLORS["label"], justify="right")
    table.add_column(style=COLORS["value"])

    if request is not None:
        table.add_row("Target", f"0x{request.target_mask:04x}  {' | '.join(describe_flags(request.target_mask)) or '(none)'}")
    table.add_row("Salts tried", f"{progress.iterations:,} / {progress.max_iterations:,}")
    table.add_row("Rate", f"{format_rate(progress.rate)} salts/s")
    table.add_row("Elapsed", f"{progress.elapsed:.1f}s")
    table.add_row("Expected", f"~{EXPECTED_TRIALS:,} salts per match")

    bar = ProgressBar(total=max(progress.max_iterations, 1), completed=progress.iterations, width=50)
    title = "Salt Miner (done)" if progress.complete else "Salt Miner"
    return Panel(Group(table, bar), title=title, padding=(1, 1))


def render_result(request: MiningRequest, result: MiningResult) -> Table:
    """Summary table for a finished search."""
    table = Table(show_header=False, title="Result")
    table.add_column(style=COLORS["label"], justify="right")
    table.add_column()

    match result:
        case Found():
            table.add_row("Status", f"[{COLORS['found']}]found[/{COLORS['found']}]")
            table.add_row("Salt", f"{result.salt} (0x{result.salt:064x})")
            table.add_row("Address", to_checksum(result.address))
            table.add_row("Flags", f"0x{result.flags:04x}  {' | '.join(describe_flags(result.flags))}")
        case NotFound():
            table.add_row("Status", f"[{COLORS['not_found']}]not found[/{COLORS['not_found']}]")
            table.add_row("Hint", "increase --max-iterations or change the init code")
        case InvalidMask():
            table.add_row("Status", f"[{COLORS['error']}]invalid mask[/{COLORS['error']}]")
            table.add_row("Mask", f"{result.target_mask:#x} is outside 0x{ALL_FLAGS_MASK:04x}")
        case Cancelled():
            table.add_row("Status", f"[{COLORS['not_found']}]cancelled[/{COLORS['not_found']}]")

    table.add_row("Iterations", f"{result.iterations:,} / {request.max_iterations:,}")
    return table


def ui_loop(state_queue: SingleSlotQueue[MiningProgress], request: Optional[MiningRequest] = None) -> None:
    """Loop the UI until the queue is closed."""
    with Live(render(None), refresh_per_second=10, screen=False) as live:
        while True:
            state = state_queue.get()
            if state is None:
                break
            live.update(render(state, request))
