from __future__ import annotations

from collections.abc import Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..features.session.schemas import ActionPayload, BattleStatePayload, EventPayload, PokemonPayload

__all__ = ["RichPresenter"]

_STATUS_STYLE = {
    "sleep": "blue",
    "poison": "magenta",
    "burn": "red",
    "paralysis": "yellow",
    "freeze": "cyan",
}

_EVENT_STYLE = {
    "faint": "bold red",
    "critical_hit": "bold yellow",
    "effectiveness": "yellow",
    "miss": "dim",
    "no_effect": "dim",
    "status": "magenta",
    "status_cured": "green",
    "heal": "green",
    "switch_in": "cyan",
    "turn_started": "bold blue",
    "battle_ended": "bold green",
    "forfeit": "bold red",
}


def _hp_bar(hp: int, max_hp: int, width: int = 20) -> str:
    ratio = hp / max_hp if max_hp else 0.0
    filled = round(ratio * width)
    color = "green" if ratio > 0.5 else "yellow" if ratio > 0.2 else "red"
    return f"[{color}]{'█' * filled}[/][dim]{'░' * (width - filled)}[/] {hp}/{max_hp}"


class RichPresenter:
    def __init__(self, *, no_color: bool = False, console: Console | None = None):
        if console is not None:
            self.console = console
        elif no_color:
            self.console = Console(force_terminal=False, color_system=None)
        else:
            self.console = Console(force_terminal=True, color_system="auto")
        self.quit_requested = False

    def start_battle(self, state: BattleStatePayload, opponent_name: str) -> None:
        guide = (
            f"[bold]{opponent_name}[/] challenges you!\n"
            "- Each turn pick a move or a switch from the numbered list.\n"
            "- Events from both sides are printed after every turn.\n\n"
            "[bold]Controls[/]: numbers = act • q = quit (forfeit)"
        )
        self.console.print(Panel(guide, title="Battle", border_style="green"))
        self.console.print()

    def show_state(self, state: BattleStatePayload) -> None:
        self.console.rule(f"Turn {state.turn}")
        grid = Table.grid(padding=(0, 1))
        grid.add_column(style="bold cyan", justify="right")
        grid.add_column(justify="left")
        foe = state.opponent_active
        if foe is not None:
            grid.add_row("Opponent", self._describe(foe))
            grid.add_row("", _hp_bar(foe.hp, foe.max_hp))
        else:
            grid.add_row("Opponent", "[dim]no pokemon on the field[/]")
        known = len(state.opponent_bench) + (1 if foe else 0)
        grid.add_row("Opp. team", f"{known} seen / {state.opponent_team_size} total")
        own = state.own_team[state.own_active_index] if state.own_active_index is not None else None
        if own is not None:
            grid.add_row("You", self._describe(own))
            grid.add_row("", _hp_bar(own.hp, own.max_hp))
        self.console.print(Panel(grid, title="Field", border_style="magenta", expand=False))

    def show_team(self, members: Sequence[PokemonPayload]) -> None:
        table = Table(show_header=True, header_style="bold blue", box=box.SIMPLE_HEAVY)
        table.add_column("Slot", justify="right", style="cyan")
        table.add_column("Pokemon", style="bold")
        table.add_column("Lv", justify="right")
        table.add_column("HP", justify="right")
        table.add_column("Status")
        table.add_column("Moves", overflow="fold")
        for mon in members:
            moves = ", ".join(f"{move.name or move.move_id} {move.pp}/{move.max_pp}" for move in mon.moves)
            marker = " *" if mon.active else ""
            table.add_row(
                str(mon.slot),
                f"{mon.name}{marker}",
                str(mon.level),
                f"{mon.hp}/{mon.max_hp}",
                self._status(mon.status),
                moves,
            )
        self.console.print(table)

    def show_events(self, events: Sequence[EventPayload]) -> None:
        for event in events:
            # the turn rule in show_state already marks the boundary
            if event.kind == "turn_started":
                continue
            style = _EVENT_STYLE.get(event.kind)
            self.console.print(f"[{style}]{event.message}[/]" if style else event.message)

    def show_actions(self, state: BattleStatePayload, actions: Sequence[ActionPayload]) -> None:
        own = state.own_team[state.own_active_index] if state.own_active_index is not None else None
        table = Table(show_header=True, header_style="bold blue", box=box.SIMPLE_HEAVY)
        table.add_column("#", justify="right", style="cyan", no_wrap=True)
        table.add_column("Action", style="bold")
        table.add_column("Details", overflow="fold")
        for number, action in enumerate(actions, 1):
            table.add_row(str(number), *self._action_cells(action, own, state))
        self.console.print(table)

    def prompt_choice(self, n: int) -> int:
        while True:
            raw = input(f"Your choice (1-{n}), or 'q' to forfeit: ").strip().lower()
            if raw == "q":
                self.quit_requested = True
                return -1
            if raw.isdigit() and 1 <= int(raw) <= n:
                return int(raw) - 1
            self.console.print(f"[red]Enter a number between 1 and {n}.[/]")

    def show_outcome(self, state: BattleStatePayload) -> None:
        outcome = state.outcome or "unknown"
        border = "green" if outcome == "player_wins" else "red" if outcome == "npc_wins" else "yellow"
        headline = {
            "player_wins": "You won the battle!",
            "npc_wins": "You lost the battle.",
            "draw": "The battle ended in a draw.",
        }.get(outcome, outcome)
        self.console.print(Panel(f"[bold]{headline}[/]\nTurns played: {state.turn}", border_style=border))

    # ------------------------------------------------------------------
    def _describe(self, mon: PokemonPayload) -> str:
        types = "/".join(mon.types)
        text = f"{mon.name} Lv{mon.level} [dim]({types})[/]"
        if mon.status:
            text += f" {self._status(mon.status)}"
        changed = {name: value for name, value in (mon.stages or {}).items() if value}
        if changed:
            text += " " + " ".join(f"{name} {value:+d}" for name, value in changed.items())
        return text

    def _status(self, status: str | None) -> str:
        if not status:
            return ""
        style = _STATUS_STYLE.get(status, "white")
        return f"[{style}]{status.upper()}[/]"

    def _action_cells(
        self,
        action: ActionPayload,
        own: PokemonPayload | None,
        state: BattleStatePayload,
    ) -> tuple[str, str]:
        if action.kind == "move" and own is not None and action.index is not None:
            move = own.moves[action.index]
            detail = f"{move.type or '?'} • power {move.power or '-'} • PP {move.pp}/{move.max_pp}"
            return move.name or move.move_id, detail
        if action.kind == "switch" and action.index is not None:
            target = state.own_team[action.index]
            return f"Switch to {target.name}", f"HP {target.hp}/{target.max_hp}"
        hints = {
            "struggle": "No PP left: a typeless hit that also hurts you",
            "continue": "Your pokemon is committed this turn",
            "forfeit": "Give up the battle",
        }
        return action.kind.title(), hints.get(action.kind, "")
