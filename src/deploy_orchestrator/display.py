# display.py
# All terminal output for deployment runs.
#
# This module owns presentation entirely. The engine and orchestrator never
# format strings. They call named functions here or write outcomes to a
# TableReport. Swap this file to change the entire UI.
#
# Colour language:
#   cyan     headers, scaffolding
#   grey     addresses, argument types
#   green    success / confirmed
#   red      failures, halts

from collections.abc import Mapping, Sequence
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from deploy_orchestrator.models import (
    ActionKind,
    ActionOutcome,
    CallReceipt,
    DeployReceipt,
    NormalizationFailure,
    StrictAction,
    VerifyReceipt,
)

console = Console()

TRUNCATE_LENGTH = 377

PREVIEW_COLUMNS: dict[ActionKind, list[tuple[str, int]]] = {
    ActionKind.DEPLOY: [("Contract", 20), ("Constr Args", 40), ("Libs", 40)],
    ActionKind.INITIALIZE: [("Contract", 20), ("Function", 40), ("Args", 40)],
    ActionKind.VERIFY: [("Contract", 20), ("Constr Args", 40), ("Libs", 40)],
}

RESULT_COLUMNS: dict[ActionKind, list[tuple[str, int]]] = {
    ActionKind.DEPLOY: [("Contract", 20), ("Address", 40), ("Response", 40)],
    ActionKind.INITIALIZE: [("Contract", 15), ("Function", 15), ("Args", 35), ("Response", 35)],
    ActionKind.VERIFY: [("Contract", 15), ("Constr Args", 15), ("Libs", 35), ("Response", 35)],
}

TITLES = {
    ActionKind.DEPLOY: "Deployment",
    ActionKind.INITIALIZE: "Initialization",
    ActionKind.VERIFY: "Verification",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def format_args(
    args: Sequence[Any], names: Sequence[str] = (), types: Sequence[str] = ()
) -> list[str]:
    """One '  name(type): value' line per argument."""
    lines: list[str] = []
    for i, value in enumerate(args):
        name = names[i] if i < len(names) else ""
        sig = f"[grey50]({types[i]})[/grey50]" if i < len(types) and types[i] else ""
        lines.append(f"  {escape(str(name))}{sig}: {escape(str(value))}")
    return lines or [""]


def format_libraries(libraries: Mapping[str, str]) -> list[str]:
    return [f"  {escape(name)}: {escape(str(address))}" for name, address in libraries.items()] or [""]


def spread_rows(columns: Sequence[Sequence[str]]) -> list[list[str]]:
    """
    Turn per-column line lists into table rows, padding short columns.

    [['Token'], ['a: 1', 'b: 2'], ['Lib: 0x1']]
      → [['Token', 'a: 1', 'Lib: 0x1'], ['', 'b: 2', '']]
    """
    height = max((len(col) for col in columns), default=0)
    return [
        [col[row] if row < len(col) else "" for col in columns]
        for row in range(height)
    ]


def _contract_cell(action: StrictAction | None, contract_name: str) -> str:
    address = getattr(action, "address", None)
    if address:
        return f"  {escape(contract_name)} [grey50]({escape(address)})[/grey50]"
    return f"  {escape(contract_name)}"


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


def preview_rows(action: StrictAction) -> list[list[str]]:
    match action.kind:
        case ActionKind.DEPLOY | ActionKind.VERIFY:
            columns = [
                [_contract_cell(action, action.contract_name)],
                format_args(action.args, action.arg_names, action.arg_types),
                format_libraries(action.libraries),
            ]
        case ActionKind.INITIALIZE:
            columns = [
                [_contract_cell(action, action.contract_name)],
                [f"  {action.function_name}"],
                format_args(action.args, action.arg_names, action.arg_types),
            ]
    return spread_rows(columns)


def _response(outcome: ActionOutcome) -> str:
    if not outcome.succeeded:
        text = " ".join([outcome.error or "", *outcome.logs]).strip()
        return f"[red]  {escape(_mono(text, TRUNCATE_LENGTH))}[/red]"

    artifact = outcome.artifact
    if isinstance(artifact, DeployReceipt):
        text = artifact.transaction_hash
    elif isinstance(artifact, CallReceipt):
        text = f"{artifact.transaction_hash} (confirmed)"
    elif isinstance(artifact, VerifyReceipt):
        text = artifact.message
    else:
        text = ""
    return f"[green]  {escape(_mono(text, TRUNCATE_LENGTH))}[/green]"


def result_rows(outcome: ActionOutcome) -> list[list[str]]:
    action = outcome.action
    name = outcome.contract_name
    response = [_response(outcome)]

    match outcome.kind:
        case ActionKind.DEPLOY:
            address = outcome.artifact.address if isinstance(outcome.artifact, DeployReceipt) else ""
            columns = [[f"  {escape(name)}"], [f"  {address}" if address else ""], response]
        case ActionKind.INITIALIZE:
            columns = [
                [_contract_cell(action, name)],
                [f"  {action.function_name}"] if action else [""],
                format_args(action.args, action.arg_names, action.arg_types) if action else [""],
                response,
            ]
        case ActionKind.VERIFY:
            columns = [
                [_contract_cell(action, name)],
                format_args(action.args, action.arg_names, action.arg_types) if action else [""],
                format_libraries(action.libraries) if action else [""],
                response,
            ]
    return spread_rows(columns)


# ---------------------------------------------------------------------------
# Streaming table
# ---------------------------------------------------------------------------


class TableReport:
    """
    Streams one row group per action outcome under a fixed header.

    Rows are printed as they arrive, so the table grows while the run
    progresses. close() draws the bottom rule.
    """

    def __init__(
        self,
        columns: Sequence[tuple[str, int]],
        title: str | None = None,
        out: Console | None = None,
    ) -> None:
        self._columns = list(columns)
        self._console = out or console
        self._closed = False

        if title:
            self._console.print()
            self._console.print(Rule(f"[cyan]{title}[/cyan]", style="cyan"))
        header = self._table(show_header=True)
        self._console.print(header)

    def _table(self, show_header: bool = False) -> Table:
        width = self._console.width
        table = Table(
            box=box.SIMPLE_HEAD if show_header else None,
            show_header=show_header,
            show_edge=False,
            header_style="bold cyan",
            padding=(0, 1),
        )
        for name, share in self._columns:
            table.add_column(name, width=max(8, share * width // 100 - 2), overflow="fold")
        return table

    def write_row(self, row: Sequence[str], index: int) -> None:
        table = self._table()
        table.add_row(*row)
        self._console.print(table)

    def write(self, outcome: ActionOutcome, index: int) -> None:
        if index:
            self._console.print(Rule(style="grey35"))
        for row in result_rows(outcome):
            self.write_row(row, index)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._console.print(Rule(style="cyan"))
        self._console.print()


def report_for(kind: ActionKind, out: Console | None = None) -> TableReport:
    return TableReport(RESULT_COLUMNS[kind], title=f"{TITLES[kind]} results", out=out)


# ---------------------------------------------------------------------------
# Pipeline messages
# ---------------------------------------------------------------------------


def run_start(kind: ActionKind, network_name: str, total: int, out: Console | None = None) -> None:
    out = out or console
    out.print()
    out.print(
        _label(TITLES[kind].upper(), "cyan"),
        f"[cyan] {total} action(s) on network[/cyan] [bold white]{network_name}[/bold white]",
    )


def preview(
    actions: Sequence[StrictAction | NormalizationFailure],
    kind: ActionKind,
    out: Console | None = None,
) -> None:
    out = out or console
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="cyan",
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    for name, share in PREVIEW_COLUMNS[kind]:
        table.add_column(name, ratio=share, overflow="fold")

    for action in actions:
        if isinstance(action, NormalizationFailure):
            table.add_row(f"  {escape(action.contract_name)}", f"[red]{escape(_mono(action.error))}[/red]", "")
            continue
        for row in preview_rows(action):
            table.add_row(*row)

    out.print()
    out.print(
        Panel(
            table,
            title=_label(f"{TITLES[kind].upper()} PREVIEW", "cyan"),
            border_style="cyan",
            padding=(0, 1),
        )
    )


def completion(kind: ActionKind, outcomes: Sequence[ActionOutcome], out: Console | None = None) -> None:
    out = out or console
    failed = sum(1 for outcome in outcomes if not outcome.succeeded)
    if failed:
        out.print(
            f"[bold red]✗ {TITLES[kind]} complete with {failed} failed action(s) "
            f"out of {len(outcomes)}.[/bold red]"
        )
    else:
        out.print(f"[bold green]✓ {TITLES[kind]} complete.[/bold green]")


def halt(reason: str, out: Console | None = None) -> None:
    out = out or console
    out.print()
    out.print(
        Panel(
            f"[bold white]{reason}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    out.print()
