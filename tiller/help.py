"""
Help rendering for tiller programs (rich).

- program_help(): "Commands:" table of every visible command banner followed
  by the class option sections.
- command_help(): usage banner, option sections, description and examples of
  one command.
- printable_commands(): the (banner, description) rows program_help() prints.

Options are printed per display group: ungrouped ones under "Options:", the
others under "<Group> options:". Each option shows its usage line, its
description, its default and its possible values.

Palette keys (override through __styles__ in __main__)
- section-label, usage, command, description, option, default
"""
from collections import defaultdict

from rich.console import Console, Group
from rich.padding import Padding
from rich.table import Table
from rich.text import Text

from . import registry
from .faults import _styles

stdout = Console()


def _palette(colorful):
    styles = _styles({
        "section-label": "bold #FFFFFF",
        "usage": "bold #36C5F0",
        "command": "bold #00E6FF",
        "description": "#9CA3AF",
        "option": "bold #22C55E",
        "default": "italic #737373",
    })

    def text(fragment, style=""):
        return Text(str(fragment or ""), styles[style] if colorful else "")

    return text


def _grid():
    table = Table.grid(padding=(0, 2))
    table.add_column(no_wrap=True)
    table.add_column()
    return table


def _print_default(option):
    match option.default:
        case list() | tuple():
            return " ".join(map(str, option.default))
        case dict():
            return " ".join("%s:%s" % item for item in option.default.items())
        case bool():
            return str(option.default).lower()
    return str(option.default)


def _options_sections(options, text):
    groups = defaultdict(list)
    for option in options:
        if not option.hide:
            groups[option.group].append(option)

    sections = []
    for group in sorted(groups, key=lambda name: (name is not None, name or "")):
        members = groups[group]
        padding = max((len(", ".join(option.aliases)) + 2 if option.aliases else 0) for option in members)
        table = _grid()
        for option in members:
            table.add_row(text(option.usage(padding), "option"), text("# %s" % (option.description or ""), "description"))
            if option.show_default():
                table.add_row("", text("# Default: %s" % _print_default(option), "default"))
            if option.enum:
                table.add_row("", text("# Possible values: %s" % ", ".join(map(str, option.enum)), "default"))
        label = "%s options:" % group if group else "Options:"
        sections += [text(label, "section-label"), Padding(table, (0, 0, 1, 2))]
    return sections


def printable_commands(program, all=True, subcommand=False):
    """
    (banner, description) rows for the visible commands of program (own
    commands only when all is false), sorted by banner.
    """
    commands = program.all_commands() if all else program.commands()
    rows = [
        (program.banner(command, subcommand=subcommand), command.description or "")
        for command in commands.values() if not command.hidden
    ]
    return sorted(rows)


def program_help(program, subcommand=False, console=None, colorful=True):
    console = console or stdout
    text = _palette(colorful)

    table = _grid()
    for banner, description in printable_commands(program, True, subcommand):
        table.add_row(text(banner, "command"), text("# %s" % description, "description"))

    renders = [text("Commands:", "section-label"), Padding(table, (0, 0, 1, 2))]
    renders += _options_sections(program.class_options().values(), text)
    console.print(Group(*renders))


def command_help(program, name, subcommand=False, console=None, colorful=True):
    console = console or stdout
    text = _palette(colorful)

    command = program.all_commands().get(registry.normalize_command_name(program, name))
    if command is None:
        program.handle_no_command_error(name)

    renders = [
        text("Usage:", "section-label"),
        Padding(text(program.banner(command, subcommand=subcommand), "usage"), (0, 0, 1, 2)),
    ]
    renders += _options_sections([*command.options.values(), *program.class_options().values()], text)

    if description := command.long_description or command.description:
        renders += [text("Description:", "section-label"), Padding(text(description), (0, 0, 1, 2))]
    if command.examples:
        renders += [
            text("Examples:", "section-label"),
            Padding(Group(*(text(example, "usage") for example in command.examples)), (0, 0, 1, 2)),
        ]
    console.print(Group(*renders))


__all__ = (
    "program_help",
    "command_help",
    "printable_commands",
)
