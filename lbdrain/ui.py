"""Colorized console output for lbdrain workflows.

Thin wrapper around :mod:`rich` that degrades gracefully when stdout
is not a TTY (deploy agents usually capture it to a log file).  All
user-facing status messages flow through this module; ``logger.*`` calls
carry the per-poll detail.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from lbdrain.lifecycle.models import Outcome, PhaseReport

# Shared consoles. force_terminal=None lets Rich detect the TTY.
console = Console(stderr=False, force_terminal=None)
err_console = Console(stderr=True, force_terminal=None)

# ── Symbols ────────────────────────────────────────────────────────────────

_PASS = "[bold green]✓[/]"
_WARN = "[bold yellow]⚠[/]"
_ARROW = "[bold cyan]›[/]"
_DOT = "[dim]·[/]"

FATAL_PREFIX = "[FATAL]"


def phase(title: str) -> None:
    """Print a bold phase header (e.g. ``DEREGISTER``, ``REGISTER``)."""
    console.print()
    console.print(f"[bold blue]── {title} ──[/]")


def ok(msg: str) -> None:
    """Green checkmark + message."""
    console.print(f"  {_PASS} {escape(msg)}")


def warn(msg: str) -> None:
    """Yellow warning + message."""
    console.print(f"  {_WARN} [yellow]{escape(msg)}[/]")


def step(msg: str) -> None:
    """Cyan arrow + action message (in-progress)."""
    console.print(f"  {_ARROW} {escape(msg)}")


def info(msg: str) -> None:
    """Dim dot + informational message."""
    console.print(f"  {_DOT} [dim]{escape(msg)}[/]")


def fatal(msg: str) -> None:
    """``[FATAL] msg`` on stderr.  Printed as plain text, never as markup."""
    line = Text(FATAL_PREFIX, style="bold red")
    line.append(f" {msg}")
    err_console.print(line, highlight=False)


def elapsed_str(seconds: float) -> str:
    """Format seconds as ``Xm Ys``."""
    m, s = divmod(int(seconds), 60)
    if m > 0:
        return f"{m}m {s}s"
    return f"{s}s"


def phase_summary(report: PhaseReport) -> None:
    """One line per target LB, then the elapsed time."""
    for target in report.targets:
        if target.outcome == Outcome.CONVERGED:
            state = target.final_state.value if target.final_state else "?"
            ok(f"{target.name}: {state} after {target.attempts} poll(s)")
        else:
            warn(f"{target.name}: skipped ({target.reason})")
    info(f"Elapsed time: {elapsed_str(report.elapsed_seconds)}")
