r"""
Tiller argument and option declarations.

Overview
- Specs
  • Argument: positional parameter consumed left-to-right by the sequence parser.
  • Option: named parameter recognised by switch (--name, -n, --name=value).
  • SharedOption: an Option published once on a program class and imported by
    many commands by name or by group.
  • IncludedOption: the copy of a SharedOption a command actually carries,
    remembering why it was included (name and/or groups).

- Introspection & representation
  • the ValueType metaclass (tiller.utils) exposes the fields listed in
    __introspectable__ as read-only properties and provides __repr__/__rich_repr__.
  • Declarations are immutable; copy.replace(declaration, **fields) builds a changed copy.

Types
- string  (default) one token, verbatim.
- numeric one token matching [-+]?(\d*\.\d+|\d+); int, or float when it has a dot.
- array   every following value token.
- hash    every following value token, each shaped key:value.
- boolean options only; presence means True, --no-name/--skip-name mean False.

Validation highlights (DeclarationError)
- unknown types, boolean positional arguments.
- required arguments with a default value, required boolean options.
- enum given as anything other than a list/tuple.
- default values whose type does not match the declared type, when the owning
  program enables check_default_type (a DefaultTypeWarning otherwise).

Quick example:
    >>> Option("verbose", type="boolean", aliases="-v").usage()
    '-v, [--verbose], [--no-verbose]'
    >>> Argument("name").usage
    'NAME'
    >>> Option.parse(["format", "-F"], "json").type
    'string'
"""
import re

from .faults import DeclarationError, DefaultTypeWarning, trigger
from .utils import *


def _default_type(default, required):
    """
    name the declaration type a default value belongs to (None when unknown).
    """
    match default:
        case None:
            return None
        case bool():
            return "string" if required else "boolean"
        case int() | float():
            return "numeric"
        case dict():
            return "hash"
        case list() | tuple():
            return "array"
        case str():
            return "string"
    return None


class Argument(metaclass=ValueType):
    """
    Positional parameter declaration.

    Required-ness
    - optional=True makes the argument optional.
    - otherwise an explicit required= wins.
    - otherwise the argument is required exactly when it has no default.

    Properties
    - name, description, type, required, default, banner, enum (read-only).
    - human_name: the key parsed values are stored under (the name itself).
    - usage: the banner, wrapped in [...] when the argument is optional.
    """
    VALID_TYPES = ("numeric", "hash", "array", "string")

    __introspectable__ = (
        "name",
        "description",
        "type",
        "required",
        "default",
        "banner",
        "enum",
    )
    __displayable__ = ("name", "type", "required", "default")

    def __init__(
            self,
            name,
            /,
            description=None,
            *,
            type="string",
            required=Unset,
            optional=False,
            default=None,
            banner=Unset,
            enum=None,
    ):
        if not isinstance(name, str) or not name.strip():
            raise DeclarationError(f"{self.__typename__} name must be a non-empty string")
        if type not in self.VALID_TYPES:
            raise DeclarationError(f"type {type!r} is not valid for {self.__typename__}s")
        if enum is not None and not isinstance(enum, list | tuple):
            raise DeclarationError(f"an {self.__typename__} cannot have an enum other than a list")

        if optional:
            required = False
        self._name = name
        self._description = description
        self._type = type
        self._required = bool(coalesce(required, default is None))
        self._default = default
        self._enum = tuple(enum) if enum is not None else None
        self._banner = coalesce(banner, self._default_banner())
        self._validate()

    def _validate(self):
        if self._required and self._default is not None:
            raise DeclarationError(f"an {self.__typename__} cannot be required and have default value")

    def _default_banner(self):
        match self._type:
            case "boolean":
                return None
            case "numeric":
                return "N"
            case "hash":
                return "key:value"
            case "array":
                return "one two three"
        return self.human_name.upper()

    def _fields(self):
        """
        constructor keywords that rebuild this declaration (see __replace__).
        """
        return {
            "description": self._description,
            "type": self._type,
            "required": self._required,
            "default": self._default,
            "banner": self._banner,
            "enum": self._enum,
        }

    def __replace__(self, /, **overrides):
        return type(self)(overrides.pop("name", self._name), **(self._fields() | overrides))

    @property
    def human_name(self):
        return self._name

    @property
    def usage(self):
        return self._banner if self._required else "[%s]" % self._banner

    def show_default(self):
        """
        whether help should print the default (empty containers are not shown).
        """
        if isinstance(self._default, list | tuple | dict | str):
            return bool(self._default)
        return self._default is not None


class Option(Argument):
    """
    Named parameter declaration.

    Names
    - switch_name: the name when it already starts with "-", else the dasherized
      name ("v" -> "-v", "dry_run" -> "--dry-run").
    - human_name: the name without leading dashes; parsed values live under it.
    - aliases: extra switches ("-f"), normalized to start with a dash.

    Fields beyond Argument
    - group: display group (capitalized), hide: keep out of help,
      lazy_default: value used when the switch is given without a value.
    - options are not required unless said so, and boolean is a valid type.
    """
    VALID_TYPES = Argument.VALID_TYPES + ("boolean",)

    __introspectable__ = Argument.__introspectable__ + (
        "switch_name",
        "aliases",
        "group",
        "hide",
        "lazy_default",
    )
    __displayable__ = ("switch_name", "type", "required", "default", "aliases")

    def __init__(
            self,
            name,
            /,
            description=None,
            *,
            type="string",
            required=False,
            default=None,
            banner=Unset,
            enum=None,
            aliases=(),
            group=None,
            hide=False,
            lazy_default=None,
            check_default_type=None,
    ):
        if not isinstance(name, str) or not name.strip():
            raise DeclarationError(f"{self.__typename__} name must be a non-empty string")
        dasherized = name.startswith("-")
        self._switch_name = name if dasherized else dasherize(name)
        self._human_name = undasherize(name) if dasherized else name
        if isinstance(aliases, str):
            aliases = (aliases,)
        self._aliases = tuple(re.sub(r"^(?!-)", "-", str(alias)) for alias in aliases)
        self._group = str(group).capitalize() if group else None
        self._hide = bool(hide)
        self._lazy_default = lazy_default
        self._check_default_type = check_default_type
        super().__init__(
            name,
            description,
            type=type,
            required=required,
            default=default,
            banner=banner,
            enum=enum,
        )

    def _validate(self):
        super()._validate()
        if self._type == "boolean" and self._required:
            raise DeclarationError("an option cannot be boolean and required")

        expected = self._type
        if (actual := _default_type(self._default, self._required)) in (None, expected):
            return
        message = "expected %s default value for %r; got %r (%s)" % (expected, self._switch_name, self._default, actual)
        if self._check_default_type:
            raise DeclarationError(message)
        if self._check_default_type is None:
            trigger(DefaultTypeWarning(message), stacklevel=5)

    def _fields(self):
        return super()._fields() | {
            "aliases": self._aliases,
            "group": self._group,
            "hide": self._hide,
            "lazy_default": self._lazy_default,
            "check_default_type": self._check_default_type,
        }

    @property
    def human_name(self):
        return self._human_name

    def usage(self, padding=0):
        """
        render the option for help and usage banners.

        - "--name=BANNER", or the bare switch for booleans;
        - wrapped in [...] unless required;
        - booleans advertise their negated form, except "force" and names that
          already read as a negation (no-*, skip-*);
        - aliases come first ("-f, "), left-justified to padding.
        """
        sample = "%s=%s" % (self._switch_name, self._banner) if self._banner else self._switch_name
        if not self._required:
            sample = "[%s]" % sample
        if self._type == "boolean" and self._name != "force" and not re.match(r"^(no|skip)[-_]", self._human_name):
            sample += ", [%s]" % dasherize("no-" + self._human_name)
        aliases = "%s, " % ", ".join(self._aliases) if self._aliases else ""
        return aliases.ljust(padding) + sample

    @classmethod
    def parse(cls, key, value, /, **fields):
        """
        build an option from the quick form used by class tables.

        parameters
        - key: "name", or ["name", *aliases].
        - value:
          • a type name ("string", "numeric", "hash", "array", "boolean") -> that type;
          • "required" -> required string;
          • True/False -> boolean defaulting to it;
          • a number -> numeric defaulting to it;
          • any other str / list / dict -> string / array / hash defaulting to it.

        returns
        - an instance of cls (fields are forwarded to the constructor).
        """
        if isinstance(key, list | tuple):
            name, *aliases = key
        else:
            name, aliases = key, []
        default, required = value, False
        match value:
            case str() if value in cls.VALID_TYPES:
                type, default = value, None
            case "required":
                type, default, required = "string", None, True
            case bool():
                type = "boolean"
            case int() | float():
                type = "numeric"
            case dict():
                type = "hash"
            case list() | tuple():
                type = "array"
            case str() | None:
                type = "string"
            case _:
                raise DeclarationError(f"cannot infer an option type from {value!r}")
        return cls(str(name), type=type, default=default, required=required, aliases=aliases, **fields)


class SharedOption(Option):
    """
    Option published for reuse; groups tag it so commands can include whole
    families of options at once.
    """
    __introspectable__ = Option.__introspectable__ + ("groups",)

    def __init__(self, name, /, description=None, *, groups=(), **fields):
        if isinstance(groups, str):
            groups = (groups,)
        self._groups = frozenset(map(str, groups))
        super().__init__(name, description, **fields)

    def _fields(self):
        return super()._fields() | {"groups": self._groups}


class IncludedOption(SharedOption):
    """
    A SharedOption as carried by one command.

    match records why it was included: {"name": True} and/or
    {"groups": {...matched groups...}}. Without an explicit group, the display
    group is the matched group names, title-cased and joined with " / ".
    """
    __introspectable__ = SharedOption.__introspectable__ + ("match",)

    def __init__(self, name, /, description=None, *, match, **fields):
        self._match = dict(match)
        super().__init__(name, description, **fields)

    @classmethod
    def include(cls, option, match):
        return cls(option.name, **option._fields(), match=match)

    def _fields(self):
        return super()._fields() | {"match": self._match}

    @property
    def group(self):
        if self._group:
            return self._group
        if not self._match.get("groups"):
            return None
        return " / ".join(titleize(group) for group in sorted(self._match["groups"]))


__all__ = (
    "Argument",
    "Option",
    "SharedOption",
    "IncludedOption",
)
