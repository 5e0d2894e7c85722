"""Rich console callback for the function-calling loop."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from function_agent.models.agent_schemas import SENTINEL_TOOL
from function_agent.tools import ToolRegistry

MAX_RESULT_LINES = 30
MAX_RESULT_CHARS = 2000


def _truncate(text: str) -> str:
    lines = text.splitlines()
    if len(lines) > MAX_RESULT_LINES or len(text) > MAX_RESULT_CHARS:
        kept = lines[:MAX_RESULT_LINES]
        truncated = "\n".join(kept)
        if len(truncated) > MAX_RESULT_CHARS:
            truncated = truncated[:MAX_RESULT_CHARS]
        omitted = len(lines) - MAX_RESULT_LINES
        if omitted > 0:
            truncated += f"\n... ({omitted} more lines)"
        return truncated
    return text


TOOL_ICONS = {
    "getCurrentWeather": "🌤 ",
    SENTINEL_TOOL: "🏁",
}


def _format_arg_value(value: Any) -> str:
    """Format a single argument value, truncating long strings."""
    s = str(value)
    if len(s) > 120:
        return s[:120] + "..."
    return s


class ConsoleCallback:
    def __init__(self, console: Console | None = None, show_output: bool = True) -> None:
        self.console = console or Console()
        self.show_output = show_output
        self._streamed = False

    def print_tools(self, registry: ToolRegistry) -> None:
        table = Table(title="Available tools", border_style="dim", show_lines=False)
        table.add_column("Tool", style="bold cyan", no_wrap=True)
        table.add_column("Description", style="dim")
        for tool in registry.list_all():
            icon = TOOL_ICONS.get(tool.name, "🔧")
            params = tool.parameters.get("properties", {})
            param_names = ", ".join(params.keys()) if params else ""
            name_col = f"{icon} {tool.name}({param_names})"
            table.add_row(name_col, tool.description)
        self.console.print(table)
        self.console.print()

    def on_turn_start(self, turn: int, retries_remaining: int) -> None:
        self.console.rule(
            f"[bold blue]Turn {turn}[/] [dim]({retries_remaining} retries left)",
            style="blue",
        )

    def on_chunk(self, text: str) -> None:
        self._streamed = True
        self.console.print(text, end="", markup=False, highlight=False)

    def on_model_output(self, text: str) -> None:
        if self._streamed:
            self._streamed = False
            self.console.print()
            return
        if not self.show_output:
            return
        self.console.print(
            Panel(
                Syntax(_truncate(text), "json", theme="ansi_dark", word_wrap=True),
                title="[bold yellow]Model",
                border_style="yellow",
                padding=(0, 1),
            )
        )

    def on_tool_call(self, name: str, args: dict[str, Any]) -> None:
        icon = TOOL_ICONS.get(name, "🔧")
        self.console.print(f"  {icon} [bold cyan]{escape(name)}[/]")
        for k, v in args.items():
            self.console.print(f"      [dim]{escape(str(k))}:[/] {escape(_format_arg_value(v))}")

    def on_tool_result(self, name: str, result: str) -> None:
        self.console.print(
            Panel(
                Text(_truncate(result), style="dim"),
                title="[dim]result",
                border_style="dim",
                padding=(0, 1),
            )
        )

    def on_corrective(self, text: str) -> None:
        self.console.print(Text.assemble(("  ↺ ", "bold red"), (text, "red")))

    def on_finish(self, text: str, turns: int, tool_calls: int) -> None:
        self.console.print()
        self.console.rule("[bold green]Final response", style="green")
        self.console.print(
            Panel(
                Text(text),
                title=f"[bold green]Result ({turns} turns, {tool_calls} tool calls)",
                border_style="green",
                padding=(0, 1),
            )
        )
