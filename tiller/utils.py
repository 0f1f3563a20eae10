"""
Helpers shared by the declaration, parsing and dispatch layers of tiller.

- Unset: "no value given" marker for parameters where None is meaningful.
- coalesce(value, default): swap Unset for a default, keep every other value.
- rename("name"): decorator fixing __name__/__qualname__ of generated callables
  (subcommand delegates, metaclass-made __repr__).
- mirror("field"): read-only property over self._field, handing out copies of
  containers.
- ValueType: metaclass of the immutable declarations and commands (mirror
  properties, __typename__, __repr__/__rich_repr__).
- dasherize / undasherize / underscore / titleize: name spellings used by
  switches, commands and help groups.
- truthy(): booleans from configuration bags and environment variables.
- Namespace: frozen option values; ns["dry-run"], ns["dry_run"] and ns.dry_run
  all read the same entry.

    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> dasherize("v"), dasherize("dry_run")
    ('-v', '--dry-run')
    >>> Namespace({"dry_run": True}).dry_run
    True
"""
import functools
import re
from collections.abc import Mapping, Sequence, Set
from typing import final


@final
class UnsetType:
    """type of the Unset marker; there is exactly one instance and it is false."""
    __slots__ = ()

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __init_subclass__(cls, **options):
        raise TypeError("UnsetType cannot be subclassed")

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"


Unset = UnsetType()


def coalesce(value, default=None, /):
    """value, or default when value is Unset (None, 0 and "" are kept)."""
    return default if value is Unset else value


def rename(name, /):
    """decorator giving the decorated callable the __name__ and __qualname__ name."""
    if not isinstance(name, str):
        raise TypeError("rename() expects a string, got %s" % type(name).__name__)

    def decorate(function):
        function.__name__ = function.__qualname__ = name
        return function

    return decorate


def _detached(value):
    match value:
        case str() | Namespace() | frozenset():
            return value
        case tuple():
            return tuple(_detached(item) for item in value)
        case Sequence():
            return [_detached(item) for item in value]
        case Mapping():
            return {key: _detached(item) for key, item in value.items()}
        case Set():
            return set(value)
    return value


def mirror(field, /):
    """read-only property returning a detached copy of self._<field>."""
    @rename(field)
    def getter(self):
        return _detached(getattr(self, "_" + field))

    return property(getter)


@rename("__rich_repr__")
def _value_rich_repr(self):
    for field in coalesce(type(self).__displayable__, type(self).__introspectable__):
        yield field, getattr(self, field)


@rename("__repr__")
def _value_repr(self):
    return "%s(%s)" % (type(self).__typename__, ", ".join("%s=%r" % item for item in self.__rich_repr__()))


class ValueType(type):
    """
    metaclass of the immutable value objects (declarations and commands).

    - every name in __introspectable__ becomes a mirror() property over "_name",
      unless the class body defines that name itself;
    - __typename__ is the hyphenated, lower-cased class name ("shared-option");
    - __repr__/__rich_repr__ list __displayable__, or else every introspectable
      field.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        properties = {
            field: mirror(field) for field in namespace.get("__introspectable__", ()) if field not in namespace
        }
        return super().__new__(cls, name, bases, namespace | properties | {
            "__typename__": re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower(),
            "__repr__": _value_repr,
            "__rich_repr__": _value_rich_repr,
        })


def dasherize(name, /):
    """
    Turn a declared name into its switch spelling.

    one-character names get a single dash ("v" -> "-v"); longer names get two
    dashes and underscores become dashes ("dry_run" -> "--dry-run").
    """
    return ("--" if len(name) > 1 else "-") + name.replace("_", "-")


def undasherize(name, /):
    """strip one or two leading dashes ("--dry-run" -> "dry-run")."""
    return re.sub(r"^-{1,2}", "", name)


def underscore(name, /):
    """
    Snake-case a command or class name ("RemoteAdd" / "remote-add" -> "remote_add").
    """
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.replace("-", "_").lower()


def titleize(text, /):
    return " ".join(word.capitalize() for word in re.split(r"[\s_\-]+", str(text)) if word)


def truthy(value, /):
    """
    Interpret configuration and environment values as booleans.

    strings are truthy when they read 1/true/yes/on/t/y (any case); every
    other value falls back to bool().
    """
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on", "t", "y")
    return bool(value)


class Namespace(Mapping):
    """
    Frozen mapping of parsed option values.

    Keys are the human names of options as declared ("dry_run", "force").
    Lookups are indifferent to dash/underscore spelling, and attribute access
    reads the same entries; an attribute with no entry reads as None so
    handlers can test optional switches without guarding.

    Merging with | returns a new Namespace; the right-hand side wins.
    """
    __slots__ = ("_values",)

    def __init__(self, values=(), /, **extra):
        object.__setattr__(self, "_values", dict(values, **extra))

    def _resolve(self, key):
        key = str(key)
        if key in self._values:
            return key
        for candidate in (key.replace("_", "-"), key.replace("-", "_")):
            if candidate in self._values:
                return candidate
        return key

    def __getitem__(self, key):
        return self._values[self._resolve(key)]

    def __contains__(self, key):
        return self._resolve(key) in self._values

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name, value):
        raise AttributeError("'Namespace' object is read-only")

    def __delattr__(self, name):
        raise AttributeError("'Namespace' object is read-only")

    def __or__(self, other, /):
        if not isinstance(other, Mapping):
            return NotImplemented
        return Namespace({**self._values, **other})

    def __ror__(self, other, /):
        if not isinstance(other, Mapping):
            return NotImplemented
        return Namespace({**other, **self._values})

    def __reduce__(self):
        return type(self), (self._values,)

    def __repr__(self):
        return "Namespace(%s)" % ", ".join("%s=%r" % item for item in self._values.items())

    def __rich_repr__(self):
        yield from self._values.items()


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "dasherize",
    "undasherize",
    "underscore",
    "titleize",
    "truthy",

    # Types
    "UnsetType",
    "ValueType",
    "Namespace",

    # Constants
    "Unset",
)
