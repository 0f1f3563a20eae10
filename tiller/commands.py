"""
Tiller command layer: declare, finish, and run commands.

What this module provides
- Command: immutable description of one invocable unit (name, usage,
  description, options, arguments, ancestor name). Changing a command means
  building a new one with copy.replace(command, ...).
- HiddenCommand: a Command left out of help listings.
- DynamicCommand: stand-in for a name nothing is registered under; running it
  fails with UndefinedCommandError unless the instance handles the name itself.
- Command.run(): the execution wrapper. Resolves the handler on the instance,
  calls it, and translates arity failures into InvocationError.
- CommandBuilder and the decorators command/option/argument/include_options:
  each decorator stacks a declaration onto the handler's builder; the program
  class finishes every builder into a Command once its body is complete.

Quick start
    from tiller import Program, command, argument, option

    class Greeter(Program):
        @command("greet NAME", "say hello")
        @argument("name")
        @option("loud", type="boolean", aliases="-l")
        def greet(self, name):
            return name.upper() if self.options.loud else name

Decorators may be stacked in any order; options and arguments keep the order
they are written in, top to bottom.
"""
import logging
import os.path
import re
import traceback

from .arguments import Argument, IncludedOption, Option
from .faults import DeclarationError
from .utils import *

logger = logging.getLogger(__name__)

_LIBRARY = os.path.dirname(os.path.abspath(__file__))

_ARITY = re.compile(
    r"missing \d+ required (positional|keyword-only) arguments?"
    r"|takes (from \d+ to )?\d+ positional arguments? but \d+ (was|were) given"
    r"|takes no arguments"
    r"|got an unexpected keyword argument"
)


class Command(metaclass=ValueType):
    """
    One invocable unit.

    fields
    - name: handler attribute name on the program (underscored).
    - description / long_description / examples: help text.
    - usage: usage line as declared ("greet NAME"); defaults to the name.
    - options: mapping of human name -> Option.
    - arguments: ordered Argument declarations parsed after the class arguments.
    - ancestor_name: set when the command lives in a program mounted as a
      subcommand; only used to render usage.
    """
    __introspectable__ = (
        "name",
        "description",
        "long_description",
        "usage",
        "examples",
        "options",
        "arguments",
        "ancestor_name",
    )
    __displayable__ = ("name", "usage", "description", "ancestor_name")

    hidden = False

    def __init__(
            self,
            name,
            /,
            description=None,
            long_description=None,
            usage=None,
            examples=(),
            options=None,
            arguments=(),
            ancestor_name=None,
    ):
        self._name = str(name)
        self._description = description
        self._long_description = long_description
        self._usage = usage if usage is not None else self._name
        self._examples = tuple(examples)
        self._options = dict(options or {})
        self._arguments = tuple(arguments)
        self._ancestor_name = ancestor_name

    def __replace__(self, /, **overrides):
        fields = {
            "description": self._description,
            "long_description": self._long_description,
            "usage": self._usage,
            "examples": self._examples,
            "options": self._options,
            "arguments": self._arguments,
            "ancestor_name": self._ancestor_name,
        }
        return type(self)(overrides.pop("name", self._name), **(fields | overrides))

    def run(self, instance, args=()):
        """
        invoke this command against a constructed program instance.

        precedence
        - a private name (leading underscore) is never invocable;
        - a callable attribute is called with args ("--" markers removed unless
          the command delegates to a subcommand program);
        - else a command_missing() defined on the instance's own class receives
          the name and args;
        - else the program raises UndefinedCommandError.

        errors
        - a TypeError raised by the call itself (arity mismatch, no frames from
          user code) becomes InvocationError with the usage banner; other
          TypeErrors propagate unchanged.
        - anything else goes through instance.on_run_error(); if that returns,
          the error is raised anyway.
        """
        program = type(instance)
        args = list(args)
        logger.debug("running %r with %r", self._name, args)
        try:
            if self._name.startswith("_"):
                program.handle_no_command_error(self._name)
            elif callable(handler := getattr(instance, self._name, None)):
                if self._name not in program.subcommand_classes():
                    args = [arg for arg in args if arg != "--"]
                result = handler(*args)
            elif "command_missing" in vars(program):
                result = instance.command_missing(self._name, *args)
            else:
                program.handle_no_command_error(self._name)
            return instance.on_run_success(result, self, args)
        except TypeError as error:
            if not self._is_arity_error(program, error):
                raise
            program.handle_argument_error(self, error, args)
        except Exception as error:
            instance.on_run_error(error, self, args)
            logger.error("on_run_error() neither exited nor re-raised %r; raising it", error)
            raise

    def _is_arity_error(self, program, error):
        if program.setting("debugging"):
            return False
        if not _ARITY.search(str(error)):
            return False
        frames = [
            frame for frame in traceback.extract_tb(error.__traceback__)
            if not os.path.abspath(frame.filename).startswith(_LIBRARY)
        ]
        return not frames

    def formatted_usage(self, program, namespace=True, subcommand=False):
        """
        usage line for help and error banners.

        - prefix: the ancestor name, else "<namespace>:" when namespace is set,
          else the last namespace segment for subcommands;
        - class arguments are inserted right after the command name;
        - required options are appended, sorted.
        """
        if self._ancestor_name:
            formatted = self._ancestor_name + " "
        elif namespace:
            formatted = re.sub(r"^default", "", program.namespace()) + ":"
        elif subcommand:
            formatted = program.namespace().split(":")[-1] + " "
        else:
            formatted = ""

        usage = str(self._usage)
        if arguments := program.class_arguments():
            banners = " ".join(argument.usage for argument in arguments)
            usage = re.sub("^" + re.escape(self._name), lambda match: match[0] + " " + banners, usage, count=1)
        formatted += usage

        required = sorted(option.usage() for option in self._options.values() if option.required)
        return (formatted + " " + " ".join(required)).strip()


class HiddenCommand(Command):
    hidden = True


class DynamicCommand(Command):
    """
    placeholder for an unregistered name; runs only when the program handles
    the name itself (command_missing), never an existing attribute.
    """

    def __init__(self, name, /, options=None):
        super().__init__(
            name,
            description="a dynamically-generated command",
            long_description=str(name),
            usage=str(name),
            options=options,
        )

    def run(self, instance, args=()):
        if hasattr(instance, self.name):
            type(instance).handle_no_command_error(self.name)
        return super().run(instance, args)


class CommandBuilder:
    """
    Pending declaration of one command, filled by the decorators.

    The decorators run bottom-up, so declarations are prepended to keep the
    written top-to-bottom order. finish() validates the whole declaration and
    returns the Command.
    """

    def __init__(self):
        self.usage = None
        self.description = None
        self.long_description = None
        self.examples = ()
        self.hide = False
        self.described = False
        self.options = []
        self.arguments = []
        self.includes = []

    def describe(self, usage=None, description=None, *, hide=False, long_description=None, examples=()):
        if self.described:
            raise DeclarationError("a command can only be described once")
        self.described = True
        self.usage = usage
        self.description = description
        self.long_description = long_description
        self.examples = tuple(examples)
        self.hide = bool(hide)

    def add_option(self, name, description=None, /, **fields):
        self.options.insert(0, (name, description, fields))

    def add_argument(self, name, description=None, /, **fields):
        self.arguments.insert(0, (name, description, fields))

    def include(self, names, groups=()):
        self.includes.insert(0, (tuple(names), tuple(groups)))

    def finish(self, handler, /, name=None, *, leading=(), shared=None, check_default_type=None):
        """
        turn this declaration into a Command for handler.

        parameters
        - name: command name (defaults to the handler's __name__).
        - leading: arguments parsed before this command's own (class arguments);
          used to enforce required-after-optional ordering across both.
        - shared: callable(names, groups) -> {name: {"option", "match"}}
          resolving include_options declarations.
        - check_default_type: forwarded to every Option built here.
        """
        name = name or handler.__name__
        options = {}
        for names, groups in self.includes:
            if shared is None:
                raise DeclarationError("command %r includes shared options but none can be resolved" % name)
            for key, found in shared(names, groups).items():
                options[key] = IncludedOption.include(found["option"], found["match"])
        for option_name, description, fields in self.options:
            fields.setdefault("check_default_type", check_default_type)
            option = Option(option_name, description, **fields)
            options[option.human_name] = option

        arguments = []
        for argument_name, description, fields in self.arguments:
            argument = Argument(argument_name, description, **fields)
            for previous in (*leading, *arguments):
                if argument.name == previous.name:
                    raise DeclarationError("argument %r is declared twice" % argument.name)
            if argument.required:
                for previous in (*leading, *arguments):
                    if not previous.required:
                        raise DeclarationError(
                            "you cannot have %r as required argument after the non-required argument %r" % (
                                argument.name, previous.human_name
                            )
                        )
            arguments.append(argument)

        cls = HiddenCommand if self.hide else Command
        return cls(
            name,
            description=self.description,
            long_description=self.long_description,
            usage=self.usage,
            examples=self.examples,
            options=options,
            arguments=arguments,
        )


def _builder(callback):
    if not callable(callback):
        raise TypeError("command decorators must be applied to a callable")
    try:
        return callback.__builder__
    except AttributeError:
        callback.__builder__ = CommandBuilder()
        return callback.__builder__


def command(usage=Unset, description=None, /, *, hide=False, long_description=None, examples=()):
    """
    Declare a method as a command.

    Usage
    - @command("greet NAME", "say hello")
    - @command (bare): usage defaults to the method name, no description.

    Parameters
    - usage: usage line shown in help ("greet NAME").
    - description: one-line summary.
    - hide: keep the command out of help listings.
    - long_description / examples: extra help text.

    Returns
    - the decorated function, unchanged apart from its builder.
    """
    if callable(usage):
        return command()(usage)

    @rename("command")
    def wrapper(callback, /):
        _builder(callback).describe(
            coalesce(usage),
            description,
            hide=hide,
            long_description=long_description,
            examples=examples,
        )
        return callback

    return wrapper


def option(name, description=None, /, **fields):
    """
    Declare an option on a command (see Option for fields).

        @option("format", "output format", enum=["json", "text"], default="text")
    """
    @rename("option")
    def wrapper(callback, /):
        _builder(callback).add_option(name, description, **fields)
        return callback

    return wrapper


def argument(name, description=None, /, **fields):
    """
    Declare a positional argument on a command (see Argument for fields).

    Command arguments are parsed after the program's class arguments and are
    passed to the handler positionally, in declaration order.
    """
    @rename("argument")
    def wrapper(callback, /):
        _builder(callback).add_argument(name, description, **fields)
        return callback

    return wrapper


def include_options(*names, groups=()):
    """
    Import shared options into a command by name and/or by group.

        @include_options("force", groups=["output"])
    """
    if isinstance(groups, str):
        groups = (groups,)

    @rename("include_options")
    def wrapper(callback, /):
        _builder(callback).include(map(str, names), map(str, groups))
        return callback

    return wrapper


__all__ = (
    "Command",
    "HiddenCommand",
    "DynamicCommand",
    "CommandBuilder",
    "command",
    "option",
    "argument",
    "include_options",
)
