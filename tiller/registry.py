"""
Per-program declaration tables and command-name resolution.

Every Program subclass owns one Registry. A registry stores only what its own
class body (and later class-level calls) declared; reads go through resolve(),
which merges the tables along the chain of registered ancestors, parent first.
A child can therefore override or remove anything it inherits without ever
touching its parent's tables.

Tables
- commands: name -> Command
- map: alias -> command name
- class_options: human name -> Option
- class_arguments: name -> Argument (ordered)
- shared_options: human name -> SharedOption
- subcommands: command name -> mounted Program class
- settings: class keywords (namespace, default_command, ...)

Removal is recorded per table as tombstones, so removing an inherited entry
hides it from this class and its descendants only.
"""
import logging

from .faults import AmbiguousCommandError, DeclarationError

logger = logging.getLogger(__name__)

_registries = {}

_TABLES = ("commands", "map", "class_options", "class_arguments", "shared_options", "subcommands")


class Registry:
    """declaration tables of one program class."""

    def __init__(self, owner, parent=None):
        self.owner = owner
        self.parent = parent
        self.settings = {}
        self.removed = {table: set() for table in _TABLES}
        for table in _TABLES:
            setattr(self, table, {})

    def __repr__(self):
        return "Registry(%s)" % self.owner.__qualname__

    def chain(self):
        """registries from the root ancestor down to this one."""
        chain = []
        registry = self
        while registry is not None:
            chain.append(registry)
            registry = registry.parent
        return reversed(chain)

    def store(self, table, key, value):
        getattr(self, table)[key] = value
        self.removed[table].discard(key)

    def remove(self, table, key):
        getattr(self, table).pop(key, None)
        self.removed[table].add(key)


def register(owner, parent=None):
    """create (or replace) the registry of owner; parent is the owner's base program."""
    registry = _registries[owner] = Registry(owner, lookup(parent) if parent is not None else None)
    logger.debug("registered program %s (parent %s)", owner.__qualname__, parent and parent.__qualname__)
    return registry


def is_registered(owner):
    return owner in _registries


def lookup(owner):
    try:
        return _registries[owner]
    except KeyError:
        raise TypeError("%r is not a registered program" % owner) from None


def resolve(owner, table):
    """
    merged view of one table for owner.

    parents are applied first; an entry re-declared further down moves to the
    end, and tombstones drop inherited entries.
    """
    merged = {}
    for registry in lookup(owner).chain():
        for key in registry.removed[table]:
            merged.pop(key, None)
        for key, value in getattr(registry, table).items():
            merged.pop(key, None)
            merged[key] = value
    return merged


def setting(owner, key, default=None):
    """nearest explicit value of a class setting."""
    for registry in reversed(list(lookup(owner).chain())):
        if key in registry.settings:
            return registry.settings[key]
    return default


def collect(owner, key):
    """union of a set-valued setting along the chain."""
    values = set()
    for registry in lookup(owner).chain():
        values |= set(registry.settings.get(key, ()))
    return frozenset(values)


def all_commands(owner):
    return resolve(owner, "commands")


def command_map(owner):
    return resolve(owner, "map")


def class_options(owner):
    return resolve(owner, "class_options")


def class_arguments(owner):
    return list(resolve(owner, "class_arguments").values())


def shared_options(owner):
    return resolve(owner, "shared_options")


def subcommand_classes(owner):
    return resolve(owner, "subcommands")


def refresh_command(owner, name):
    """
    the command called name, copied into owner's own table when inherited so
    later changes stay local to owner.
    """
    registry = lookup(owner)
    name = str(name)
    if name in registry.commands:
        return registry.commands[name]
    if (command := all_commands(owner).get(name)) is not None:
        registry.store("commands", name, command)
        return command
    raise DeclarationError("the command %r could not be found in %s" % (name, owner.__qualname__))


def find_shared_options(owner, *names, groups=()):
    """
    shared options matching any of names or groups.

    returns
    - {human name: {"option": SharedOption, "match": {"name": True, "groups": {...}}}}
      where match records every reason the option was selected.
    """
    if isinstance(groups, str):
        groups = (groups,)
    names = set(map(str, names))
    groups = set(map(str, groups))
    found = {}
    for key, option in shared_options(owner).items():
        match = {}
        if key in names:
            match["name"] = True
        if matched := option.groups & groups:
            match["groups"] = set(matched)
        if match:
            found[key] = {"option": option, "match": match}
    return found


def find_command_possibilities(owner, name):
    """
    candidate command names for a (possibly abbreviated) name.

    - an exact command or alias wins outright;
    - otherwise every command and alias starting with name is a candidate,
      and candidates naming the same command collapse into it;
    - more than one remaining candidate means the name is ambiguous.
    """
    mapping = command_map(owner)
    possibilities = sorted(key for key in {**all_commands(owner), **mapping} if key.startswith(name))
    if name in possibilities:
        return [name]
    unique = list(dict.fromkeys(mapping.get(key, key) for key in possibilities))
    if len(unique) == 1:
        return unique
    return possibilities


def normalize_command_name(owner, name):
    """
    resolve user input to a command name.

    - empty input names the default command;
    - an ambiguous prefix raises AmbiguousCommandError;
    - aliases are followed, unique prefixes completed;
    - dashes become underscores in the result.
    """
    if not name:
        default = setting(owner, "default_command") or "help"
        return "help" if default == "none" else str(default).replace("-", "_")
    name = str(name)
    possibilities = find_command_possibilities(owner, name)
    if len(possibilities) > 1:
        raise AmbiguousCommandError(
            "ambiguous command %s matches [%s]" % (name, ", ".join(possibilities)),
            input=name,
            candidates=tuple(possibilities),
            hint="did you mean one of: %s?" % ", ".join(possibilities),
        )
    mapping = command_map(owner)
    if possibilities:
        name = mapping.get(name, possibilities[0])
    return name.replace("-", "_")


__all__ = (
    "Registry",
    "register",
    "is_registered",
    "lookup",
    "resolve",
    "setting",
    "collect",
    "all_commands",
    "command_map",
    "class_options",
    "class_arguments",
    "shared_options",
    "subcommand_classes",
    "refresh_command",
    "find_shared_options",
    "find_command_possibilities",
    "normalize_command_name",
)
