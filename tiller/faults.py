"""
Tiller faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain (declaration, routing, values, invocation) so logs
  and searches stay predictable.
- CommandException / CommandWarning: base types that carry a message plus
  keyword context and know how to render themselves through rich.
- DeclarationError: raised while a program class is being declared; it is a
  programming mistake, not a user input problem, so it is a plain ValueError.
- trigger(): central entry point to surface a fault, either raising it or
  printing it on stderr and exiting (shell mode).

Integration
- The parser and dispatcher raise CommandException subclasses directly.
- Program.start() hands caught faults to trigger(fault, shell=True, ...), which
  prints a one-line header plus the message and exits with status 1.
- Styling can be overridden from the host application via __styles__ in __main__.
"""
import copy
import sys
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping
    - declaration (1010x)
      • INVALID_DECLARATION
    - routing (1110x)
      • AMBIGUOUS_COMMAND, UNDEFINED_COMMAND
    - values (1111x)
      • MISSING_VALUE, MALFORMED_VALUE, UNKNOWN_ARGUMENT
    - invocation (1112x)
      • BAD_INVOCATION
    - warnings (121xx)
      • DEFAULT_TYPE_MISMATCH

    normalize() allows host remapping to custom labels while keeping code-stability.
    """
    # --- declaration errors (10xxx) ---
    INVALID_DECLARATION   = 10101

    # --- routing errors (11xxx) ---
    AMBIGUOUS_COMMAND     = 11101
    UNDEFINED_COMMAND     = 11102

    # --- value errors (11xxx) ---
    MISSING_VALUE         = 11111
    MALFORMED_VALUE       = 11112
    UNKNOWN_ARGUMENT      = 11113

    # --- invocation errors (11xxx) ---
    BAD_INVOCATION        = 11121

    # --- warnings (12xxx) ---
    DEFAULT_TYPE_MISMATCH = 12111

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _styles(defaults):
    return defaultdict(str, defaults | getattr(__import__("__main__"), "__styles__", {}))


class CommandException(Exception):
    """
    base class of every runtime fault raised while resolving, parsing or
    invoking a command.

    - message: the one-sentence body shown to the user.
    - options: read-only keyword context (prog, hint, input, candidates, ...).
    - code/title: taken from the options when given, else from the class.
    """
    __code__ = Unset
    __title__ = "command error"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(coalesce(message, ""))
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message

    @property
    def code(self):
        return self.options.get("code", self.__code__)

    @property
    def title(self):
        return self.options.get("title", self.__title__)

    def __rich__(self):
        colorful = self.options.get("colorful", True)
        styles = _styles({
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        })

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            return Text(str(fragment), styles[style] if colorful else "")

        parts = ["[ ", text(self.options.get("prog", "tiller"), "prog-name")]
        if self.code:
            parts += [" — ", text(self.code.normalize(), "code")]
        parts += [" | ", text(self.title.title(), "error-title"), " ]"]
        header = Text.assemble(*parts)
        message = text(self.message, "error-message")

        if not self.options.get("hint"):
            return Group(header, message)
        hint = Text.assemble(text(" → ", "hint-arrow"), text(self.options["hint"], "hint"))
        return Group(header, message, hint)

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            raise self
        console.print(self)
        if self.options.get("deferred"):
            return
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        replica = type(self)(self.message, **{**self.options, **overrides})
        replica.__traceback__ = self.__traceback__
        return replica


class AmbiguousCommandError(CommandException):
    __code__ = FaultCode.AMBIGUOUS_COMMAND
    __title__ = "ambiguous command"


class UndefinedCommandError(CommandException):
    __code__ = FaultCode.UNDEFINED_COMMAND
    __title__ = "unknown command"


class MissingValueError(CommandException):
    __code__ = FaultCode.MISSING_VALUE
    __title__ = "missing value"


class RequiredArgumentMissingError(MissingValueError):
    __title__ = "missing required value"


class MalformattedArgumentError(CommandException):
    __code__ = FaultCode.MALFORMED_VALUE
    __title__ = "malformed value"


class UnknownArgumentError(CommandException):
    __code__ = FaultCode.UNKNOWN_ARGUMENT
    __title__ = "unknown switches"


class InvocationError(CommandException):
    __code__ = FaultCode.BAD_INVOCATION
    __title__ = "wrong number of arguments"


class DeclarationError(ValueError):
    """
    invalid argument/option/command declaration (raised at class-definition time).
    """
    code = FaultCode.INVALID_DECLARATION


class CommandWarning(Warning):
    __code__ = Unset
    __title__ = "command warning"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(coalesce(message, ""))
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message

    def __rich__(self):
        colorful = self.options.get("colorful", True)
        styles = _styles({
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "warning-title": "bold #FFC2E0",
            "warning-message": "#D6D6DE",
        })

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            return Text(str(fragment), styles[style] if colorful else "")

        header = Text.assemble(
            "[ ",
            text(self.options.get("prog", "tiller"), "prog-name"),
            " — ",
            text(self.__code__.normalize(), "code"),
            " | ",
            text(self.__title__.title(), "warning-title"),
            " ]"
        )
        return Group(header, text(self.message, "warning-message"))

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            return warnings.warn(self, stacklevel=self.options.get("stacklevel", 2))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class DefaultTypeWarning(CommandWarning, DeprecationWarning):
    __code__ = FaultCode.DEFAULT_TYPE_MISMATCH
    __title__ = "default type mismatch"


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via copy.replace() before triggering.
    - in shell mode, rendering happens via the rich console; otherwise exceptions
      are raised and warnings go through the warnings module.

    typical options
    - prog, shell, deferred, colorful, hint, stacklevel.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


__all__ = (
    "CommandException",
    "AmbiguousCommandError",
    "UndefinedCommandError",
    "MissingValueError",
    "RequiredArgumentMissingError",
    "MalformattedArgumentError",
    "UnknownArgumentError",
    "InvocationError",
    "DeclarationError",
    "CommandWarning",
    "DefaultTypeWarning",
    "FaultCode",
    "trigger",
)
