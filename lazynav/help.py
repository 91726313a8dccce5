"""Help text generated from the active key bindings.

The text goes to the pager, so it is plain text grouped per context with
one line per action listing every key bound to it.
"""

from __future__ import annotations

from .keys import Action, BindingTables, KeyNames, format_key

HEADER = (
    "lazynav - directory navigator",
    "",
    "Bindings can be changed in the 'bindings' configuration file with",
    "lines of the form 'CONTEXT KEY ACTION' or 'define NAME SEQUENCE'.",
)

CONTEXT_TITLES = (
    ("normal", "Browsing"),
    ("input", "Line editing"),
    ("search", "Search overrides"),
)


def _grouped(table: dict[int, Action], names: KeyNames) -> list[tuple[Action, list[str]]]:
    keys_by_action: dict[Action, list[str]] = {}
    for key, action in table.items():
        if action is Action.NONE:
            continue
        keys_by_action.setdefault(action, []).append(format_key(key, names))
    order = list(Action)
    return sorted(keys_by_action.items(), key=lambda item: order.index(item[0]))


def help_text(tables: BindingTables, names: KeyNames) -> str:
    lines = list(HEADER)
    for context, title in CONTEXT_TITLES:
        table = tables.context(context)
        if not table:
            continue
        lines.append("")
        lines.append(f"{title}:")
        grouped = _grouped(table, names)
        column = max((len(action.value) for action, _ in grouped), default=0)
        for action, keys in grouped:
            lines.append(f"  {action.value.ljust(column)}  {', '.join(keys)}")
    return "\n".join(lines) + "\n"
