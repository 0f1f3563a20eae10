"""
Tiller programs: declaration surface, construction-time parsing and dispatch.

Overview
- Program is the base class of every command-line program. Subclassing it
  registers a new declaration table (see tiller.registry) whose parent is the
  nearest registered base, so commands, options and arguments are inherited
  and can be overridden per subclass.

Declaring
- class keywords configure the program:
    class Deploy(Program, namespace="deploy", check_unknown_options=True): ...
  namespace, default_command, check_unknown_options (True, or a mapping with
  "only"/"except" command lists), stop_on_unknown_option (command names),
  disable_required_check (command names; "help" is always included),
  strict_args_position, check_default_type, exit_on_failure, debugging,
  common_options.
- dunder tables in the class body:
  • __map__: alias -> command name (a tuple key maps several aliases);
  • __options__: class options (Option objects, or a {name: quick-form} mapping);
  • __arguments__: class arguments (Argument objects), stored on the instance;
  • __shared__: SharedOption objects commands may include by name or group.
- methods decorated with @command/@option/@argument/@include_options become
  commands when the class body completes.
- classmethods (class_option, method_option(for_=...), describe(for_=...),
  subcommand, remove_command, ...) change the tables afterwards.

Running
- Program.start(argv): dispatch, rendering framework faults on stderr.
- Program.dispatch(name, args, opts, config): resolve and invoke one command.
- Program.exec(argv): dispatch through tiller.execution.Execution.

Instances
- built by dispatch(); parsing happens in __init__ and the outcome is exposed
  as self.options (frozen Namespace), self.args (leftover tokens),
  self.parse_result and one attribute per class argument.
"""
import copy
import difflib
import logging
import os.path
import sys
from collections.abc import Mapping

from . import registry
from .arguments import Argument, Option, SharedOption
from .commands import Command, DynamicCommand, command
from .execution import Execution
from .faults import CommandException, DeclarationError, InvocationError, UndefinedCommandError, trigger
from .help import command_help, program_help
from .parser import Arguments, Options, ParseResult
from .utils import *

logger = logging.getLogger(__name__)

HELP_MAPPINGS = ("-h", "-?", "--help", "-D")

RESERVED_WORDS = ("invoke", "options", "args", "config", "run", "shell", "dispatch", "start", "exec")

COMMON_OPTIONS = {
    "backtrace": {
        "type": "boolean",
        "description": "print stack traces with error messages",
    },
}


def _names(value):
    if isinstance(value, str):
        return frozenset((value,))
    return frozenset(map(str, value))


def _check_reserved(name, kind):
    if name in RESERVED_WORDS or (kind == "argument" and name == "help"):
        raise DeclarationError("%r is a tiller reserved word and cannot be defined as %s" % (name, kind))


def _declare(cls, /, common_options=(), **settings):
    """
    register cls and replay everything its class body declared.
    """
    parent = next((base for base in cls.__mro__[1:] if registry.is_registered(base)), None)
    table = registry.register(cls, parent)

    for key, value in settings.items():
        if value is Unset:
            continue
        if key in ("stop_on_unknown_option", "disable_required_check"):
            value = _names(value)
        elif key == "check_unknown_options" and isinstance(value, Mapping):
            value = {condition: _names(names) for condition, names in value.items()}
        table.settings[key] = value

    for name in _names(common_options):
        try:
            fields = dict(COMMON_OPTIONS[name])
        except KeyError:
            raise DeclarationError("unknown common option %r" % name) from None
        cls.class_option(name, fields.pop("description", None), **fields)

    cls.map_commands(vars(cls).get("__map__", {}))

    declared = vars(cls).get("__options__", ())
    if isinstance(declared, Mapping):
        declared = [
            Option.parse(key, value, check_default_type=cls._check_default_type())
            for key, value in declared.items()
        ]
    for option in declared:
        cls.class_option(option)
    for argument in vars(cls).get("__arguments__", ()):
        cls.class_argument(argument)
    for option in vars(cls).get("__shared__", ()):
        cls.shared_option(option)

    for name, value in list(vars(cls).items()):
        if not callable(value) or (builder := getattr(value, "__builder__", None)) is None:
            continue
        if name.startswith("_"):
            raise DeclarationError("private method %r cannot be declared as a command" % name)
        _check_reserved(name, "a command")
        table.store("commands", name, builder.finish(
            value,
            name,
            leading=cls.class_arguments(),
            shared=lambda names, groups: cls.find_shared_options(*names, groups=groups),
            check_default_type=cls._check_default_type(),
        ))
    return table


class Program:
    """
    Base class of tiller programs (see the module documentation).

    instance attributes
    - options: frozen Namespace of option values (class and command options).
    - args: tokens left after option and argument parsing.
    - config: the configuration bag this instance was built with.
    - parse_result: ParseResult of the construction-time parse.
    """

    def __init_subclass__(
            cls,
            /,
            namespace=Unset,
            default_command=Unset,
            check_unknown_options=Unset,
            stop_on_unknown_option=Unset,
            disable_required_check=Unset,
            strict_args_position=Unset,
            check_default_type=Unset,
            exit_on_failure=Unset,
            debugging=Unset,
            common_options=(),
            **options,
    ):
        super().__init_subclass__(**options)
        _declare(
            cls,
            common_options=common_options,
            namespace=namespace,
            default_command=default_command,
            check_unknown_options=check_unknown_options,
            stop_on_unknown_option=stop_on_unknown_option,
            disable_required_check=disable_required_check,
            strict_args_position=strict_args_position,
            check_default_type=check_default_type,
            exit_on_failure=exit_on_failure,
            debugging=debugging,
        )

    def __init__(self, args=(), local_options=None, config=None):
        program = type(self)
        config = dict(config or {})
        if isinstance(local_options, Mapping):
            tokens, defaults = [], dict(local_options)
        else:
            tokens, defaults = list(local_options or ()), {}

        current = config.get("current_command")
        declared = program.class_options() | dict(config.pop("command_options", None) or {})
        parser = Options(
            declared,
            defaults,
            program.stops_on_unknown_option(current),
            program.disables_required_check(current),
        )
        options = parser.parse(tokens)
        if config.get("class_options"):
            options = Namespace(config["class_options"]) | options
        if program.checks_unknown_options(config):
            parser.check_unknown()

        pending = list(args)
        marker = None
        if not program.setting("strict_args_position"):
            if parser.terminator is not None:
                marker = len(pending) + parser.terminator
            pending += parser.remaining
        if marker is not None:
            # "--" is never an argument value; it goes back into the leftovers
            del pending[marker]
        class_arguments = program.class_arguments()
        arguments = Arguments([*class_arguments, *(current.arguments if current else ())])
        values = arguments.parse(pending)
        for argument in class_arguments:
            setattr(self, argument.human_name, values.get(argument.human_name))

        leftover = arguments.remaining
        if marker is not None:
            consumed = len(pending) - len(leftover)
            leftover.insert(max(marker - consumed, 0), Options.END)

        self.options = options
        self.args = leftover
        self.config = config
        self.parse_result = ParseResult(options, values, self.args, parser.unknown())

    def __repr__(self):
        return "%s(options=%r, args=%r)" % (type(self).__qualname__, self.options, self.args)

    # --- configuration -------------------------------------------------------

    @classmethod
    def setting(cls, key, default=None):
        return registry.setting(cls, key, default)

    @classmethod
    def namespace(cls):
        """the namespace keyword of this very class, else its snake-cased name."""
        return registry.lookup(cls).settings.get("namespace") or underscore(cls.__name__)

    @classmethod
    def basename(cls):
        """
        program name shown in banners: __prog__ on the class, else __prog__ in
        __main__, else the executable name.
        """
        if prog := getattr(cls, "__prog__", None) or getattr(__import__("__main__"), "__prog__", None):
            return prog
        if sys.argv and sys.argv[0]:
            return os.path.basename(sys.argv[0]).split(" ")[0]
        return cls.namespace()

    @classmethod
    def default_command(cls):
        name = cls.setting("default_command", "help")
        return "help" if name in (None, "none") else name

    @classmethod
    def exit_on_failure(cls):
        return bool(cls.setting("exit_on_failure", False))

    @classmethod
    def _check_default_type(cls):
        value = cls.setting("check_default_type")
        return None if value is None else bool(value)

    @classmethod
    def checks_unknown_options(cls, config=None):
        """
        whether unknown switches are rejected for the command in config.

        never for commands that delegate to a subcommand program; the nested
        program decides for itself.
        """
        value = cls.setting("check_unknown_options", False)
        if not value:
            return False
        current = (config or {}).get("current_command")
        if current is None:
            return True
        if current.name in cls.subcommand_classes():
            return False
        if isinstance(value, Mapping):
            if "except" in value:
                return current.name not in value["except"]
            if "only" in value:
                return current.name in value["only"]
        return True

    @classmethod
    def stops_on_unknown_option(cls, command):
        return command is not None and command.name in registry.collect(cls, "stop_on_unknown_option")

    @classmethod
    def disables_required_check(cls, command):
        return command is not None and command.name in registry.collect(cls, "disable_required_check")

    # --- tables --------------------------------------------------------------

    @classmethod
    def commands(cls):
        """commands declared by this class only."""
        return dict(registry.lookup(cls).commands)

    @classmethod
    def all_commands(cls):
        return registry.all_commands(cls)

    @classmethod
    def command_map(cls):
        return registry.command_map(cls)

    @classmethod
    def class_options(cls):
        return registry.class_options(cls)

    @classmethod
    def class_arguments(cls):
        return registry.class_arguments(cls)

    @classmethod
    def shared_options(cls):
        return registry.shared_options(cls)

    @classmethod
    def subcommand_classes(cls):
        return registry.subcommand_classes(cls)

    @classmethod
    def subcommands(cls):
        return list(cls.subcommand_classes())

    @classmethod
    def find_shared_options(cls, *names, groups=()):
        return registry.find_shared_options(cls, *names, groups=groups)

    # --- declaring -----------------------------------------------------------

    @classmethod
    def class_option(cls, name, description=None, /, **fields):
        """
        declare an option shared by every command of this program.

        name may also be a ready Option.
        """
        if isinstance(name, Option):
            option = name
        else:
            fields.setdefault("check_default_type", cls._check_default_type())
            option = Option(name, description, **fields)
        registry.lookup(cls).store("class_options", option.human_name, option)
        return option

    @classmethod
    def class_argument(cls, name, description=None, /, **fields):
        """
        declare a positional argument parsed for every command, before the
        command's own arguments, and stored as an instance attribute.
        """
        argument = name if isinstance(name, Argument) else Argument(name, description, **fields)
        _check_reserved(argument.human_name, "argument")
        table = registry.lookup(cls)
        existing = [previous for previous in cls.class_arguments() if previous.name != argument.name]
        if argument.required:
            for previous in existing:
                if not previous.required:
                    raise DeclarationError(
                        "you cannot have %r as required argument after the non-required argument %r" % (
                            argument.name, previous.human_name
                        )
                    )
        table.store("class_arguments", argument.name, argument)
        return argument

    @classmethod
    def shared_option(cls, name, description=None, /, *, groups=(), **fields):
        """
        publish an option commands can import with @include_options.
        """
        if "for_" in fields:
            raise DeclarationError("shared options cannot be declared for a specific command")
        if isinstance(name, Option):
            if not isinstance(name, SharedOption):
                raise DeclarationError("%r is not a shared option" % name.human_name)
            option = name
        else:
            fields.setdefault("check_default_type", cls._check_default_type())
            option = SharedOption(name, description, groups=groups, **fields)
        registry.lookup(cls).store("shared_options", option.human_name, option)
        return option

    @classmethod
    def map_commands(cls, mapping):
        """
        register aliases: {"-T": "list", ("ls", "l"): "list"}.
        """
        table = registry.lookup(cls)
        for aliases, target in dict(mapping).items():
            if isinstance(aliases, str):
                aliases = (aliases,)
            for alias in aliases:
                table.store("map", str(alias), str(target))

    @classmethod
    def describe(cls, usage=None, description=None, /, *, for_, long_description=None, examples=None):
        """
        change the help text of an (inherited) command without touching the
        parent's copy.
        """
        current = registry.refresh_command(cls, for_)
        changes = {
            key: value for key, value in {
                "usage": usage,
                "description": description,
                "long_description": long_description,
                "examples": examples,
            }.items() if value is not None
        }
        replaced = copy.replace(current, **changes)
        registry.lookup(cls).store("commands", replaced.name, replaced)
        return replaced

    @classmethod
    def method_option(cls, name, description=None, /, *, for_, **fields):
        """add an option to an (inherited) command of this class."""
        current = registry.refresh_command(cls, for_)
        fields.setdefault("check_default_type", cls._check_default_type())
        option = Option(name, description, **fields)
        replaced = copy.replace(current, options=current.options | {option.human_name: option})
        registry.lookup(cls).store("commands", replaced.name, replaced)
        return replaced

    @classmethod
    def remove_command(cls, *names, undefine=False):
        """
        drop commands from this class (inherited ones included); with undefine,
        the handler methods defined on this class are deleted too.
        """
        table = registry.lookup(cls)
        for name in map(str, names):
            table.remove("commands", name)
            table.remove("subcommands", name)
            if undefine and name in vars(cls):
                delattr(cls, name)

    @classmethod
    def remove_argument(cls, *names):
        table = registry.lookup(cls)
        for name in map(str, names):
            table.remove("class_arguments", name)

    @classmethod
    def remove_class_option(cls, *names):
        table = registry.lookup(cls)
        for name in map(str, names):
            table.remove("class_options", undasherize(name))

    @classmethod
    def subcommand(cls, name, program, /, *, description=None):
        """
        mount another program under a command of this one.

        "app remote add origin" dispatches "add origin" to program; --help/-h in
        the delegated tokens runs the nested program's help instead, and this
        program's option values reach the nested instance as class options.
        """
        if not (isinstance(program, type) and issubclass(program, Program)):
            raise DeclarationError("subcommand %r must be a Program subclass" % name)
        name = str(name)
        method = underscore(name)
        _check_reserved(method, "a command")

        @rename(method)
        def delegate(self, *args):
            positional, switches = Arguments.split(args)
            nested = None
            if "--help" in switches or "-h" in switches:
                switches = [switch for switch in switches if switch not in ("--help", "-h")]
                nested = "help"
            config = {"invoked_via_subcommand": True, "class_options": self.options}
            if "console" in self.config:
                config["console"] = self.config["console"]
            return self.invoke(program, nested, positional, switches, config)

        delegate.__qualname__ = "%s.%s" % (cls.__qualname__, method)
        setattr(cls, method, delegate)

        table = registry.lookup(cls)
        table.store("subcommands", method, program)
        table.store("commands", method, Command(
            method,
            description=description,
            usage="%s SUBCOMMAND ..." % name,
        ))

        nested = registry.lookup(program)
        for key, found in program.all_commands().items():
            if found.ancestor_name is None:
                nested.store("commands", key, copy.replace(found, ancestor_name=name))
        logger.debug("mounted %s as %r under %s", program.__qualname__, name, cls.__qualname__)
        return program

    @classmethod
    def register(cls, program, name, usage, description, /, long_description=None):
        """mount program as a subcommand with explicit help text."""
        cls.subcommand(name, program, description=description)
        cls.describe(usage, description, for_=underscore(name), long_description=long_description)
        return program

    # --- running -------------------------------------------------------------

    @classmethod
    def dispatch(cls, name=None, args=(), opts=None, config=None):
        """
        resolve a command and run it against a fresh instance.

        parameters
        - name: command name, or None to peel it off args.
        - args: tokens; a leading run of non-switch tokens is positional.
        - opts: option tokens, or a mapping of already-parsed option values.
        - config: bag passed to the instance (current_command, class_options,
          invoked_via_subcommand, on_instance, ...).

        returns
        - whatever the command handler returns.
        """
        args = list(args)
        config = dict(config or {})
        on_instance = config.pop("on_instance", None)

        if name is None:
            name = cls._retrieve_command_name(args)
        normalized = registry.normalize_command_name(cls, name)
        all_commands = cls.all_commands()
        found = all_commands.get(normalized)
        logger.debug("dispatching %r as %r in %s", name, normalized, cls.__qualname__)

        if found is None and config.get("invoked_via_subcommand"):
            logger.debug("%r is not a command of %s; retrying with the default command", name, cls.__qualname__)
            args.insert(0, name)
            found = all_commands.get(registry.normalize_command_name(cls, cls.default_command()))

        if found is not None:
            positional, switches = Arguments.split(args)
            if cls.stops_on_unknown_option(found) and positional:
                positional, switches = positional + switches, []
        else:
            positional, switches = args, []
            found = DynamicCommand(name or normalized)

        if opts is None:
            opts = switches
        config["current_command"] = found
        config["command_options"] = found.options

        instance = cls(positional, opts, config)
        if on_instance is not None:
            on_instance(instance)

        values = []
        for argument in found.arguments:
            if argument.human_name not in instance.parse_result.positionals:
                break
            values.append(instance.parse_result.positionals[argument.human_name])
        return instance.invoke_command(found, values + instance.args)

    @classmethod
    def _retrieve_command_name(cls, args):
        if not args:
            return None
        if args[0] in cls.command_map() or not args[0].startswith("-"):
            return args.pop(0)
        return None

    @classmethod
    def start(cls, argv=None, config=None):
        """
        run the program from the command line.

        framework faults are printed on stderr (exit 1 when exit_on_failure() is
        true); config["debug"] or TILLER_DEBUG=1 re-raises them instead. Other
        exceptions propagate.
        """
        config = dict(config or {})
        argv = list(sys.argv[1:] if argv is None else argv)
        try:
            return cls.dispatch(None, argv, None, config)
        except CommandException as error:
            if config.get("debug") or os.environ.get("TILLER_DEBUG") == "1":
                raise
            trigger(error, shell=True, deferred=not cls.exit_on_failure(), prog=cls.basename())
        except BrokenPipeError:
            sys.exit(0)

    @classmethod
    def exec(cls, argv=None, config=None):
        """run the program through Execution (debug/backtrace/raise_errors aware)."""
        return Execution(cls, sys.argv[1:] if argv is None else argv, config).exec()

    def invoke(self, program, name=None, args=(), opts=None, config=None):
        """run a command of another program class."""
        return program.dispatch(name, list(args), opts, config)

    def invoke_command(self, command, args=()):
        return command.run(self, args)

    def on_run_success(self, result, command, args):
        """hook: called with the handler's return value, which it returns."""
        return result

    def on_run_error(self, error, command, args):
        """hook: called with any failure of a handler; must exit or re-raise."""
        raise error

    def option_kwds(self, *names, groups=()):
        """
        option values as keyword arguments, selected by name and/or shared group.
        """
        wanted = set(map(str, names))
        if groups:
            wanted |= set(type(self).find_shared_options(groups=groups))
        return {
            key.replace("-", "_"): value for key, value in self.options.items()
            if key in wanted or key.replace("-", "_") in wanted
        }

    # --- faults --------------------------------------------------------------

    @classmethod
    def handle_no_command_error(cls, name):
        candidates = [key for key, found in cls.all_commands().items() if not found.hidden]
        candidates += list(cls.command_map())
        options = {"input": name}
        if matches := difflib.get_close_matches(str(name), candidates, n=3):
            options["hint"] = "did you mean %s?" % " or ".join(map(repr, matches))
        raise UndefinedCommandError(
            'could not find command "%s" in "%s" namespace' % (name, cls.namespace()),
            **options,
        )

    @classmethod
    def handle_argument_error(cls, command, error, args):
        name = " ".join(filter(None, (command.ancestor_name, command.name)))
        if args:
            called = "arguments %r" % list(args)
        else:
            called = "no arguments"
        raise InvocationError(
            '"%s %s" was called with %s\nusage: "%s"' % (cls.basename(), name, called, cls.banner(command)),
            command=command.name,
            arguments=tuple(args),
        ) from error

    @classmethod
    def banner(cls, command, namespace=False, subcommand=False):
        return "%s %s" % (cls.basename(), command.formatted_usage(cls, namespace, subcommand))

    # --- help ----------------------------------------------------------------

    @classmethod
    def print_help(cls, console=None, subcommand=False):
        program_help(cls, subcommand=subcommand, console=console)

    @classmethod
    def print_command_help(cls, name, console=None, subcommand=False):
        command_help(cls, name, subcommand=subcommand, console=console)

    @command("help [COMMAND]", "describe available commands or one specific command")
    def help(self, *names):
        console = self.config.get("console")
        via_subcommand = bool(self.config.get("invoked_via_subcommand"))
        if not names:
            return type(self).print_help(console, subcommand=via_subcommand)

        name, *rest = names
        subcommands = type(self).subcommand_classes()
        if (key := underscore(name)) in subcommands:
            if not rest:
                return subcommands[key].print_help(console, subcommand=True)
            return self.invoke(subcommands[key], "help", rest, {}, {
                "invoked_via_subcommand": True,
                "class_options": self.options,
                "console": console,
            })
        return type(self).print_command_help(name, console, subcommand=via_subcommand)


_declare(
    Program,
    default_command="help",
    disable_required_check=("help",),
)
Program.map_commands({HELP_MAPPINGS: "help"})


__all__ = (
    "Program",
    "HELP_MAPPINGS",
    "RESERVED_WORDS",
    "COMMON_OPTIONS",
)
