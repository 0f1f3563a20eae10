r"""
Tiller token parsers: positional sequences and switches.

What this module provides
- Arguments: consumes tokens left-to-right against an ordered list of Argument
  declarations (no backtracking), coercing by declared type.
- Options: walks a whole token stream, recognising switch syntaxes and
  coercing option values, while everything it does not consume lands in
  `remaining` in original order.
- ParseResult: the frozen outcome of one construction-time parse.

Switch syntaxes (highest specificity first)
1. --name=value / -x=value       equals form, split at the first '='.
2. -xyz                          bundled short flags, re-queued as -x -y -z
                                 when every letter is a registered switch.
3. -x123                         short switch glued to a numeric literal.
4. --long-name / -x              bare switch; the value (if any) is the next token.
5. --no-name / --skip-name       negated spelling of a registered --name.

The bare token "--" switches option recognition off for the rest of the stream;
it stays in `remaining` so nested programs down the dispatch chain see it too.

Invariant
- every input token is either consumed into an assignment or kept in
  `remaining`, in order; nothing is lost or duplicated.
"""
import copy
import logging
import re
from collections import deque
from typing import NamedTuple

from .faults import MalformattedArgumentError, MissingValueError, RequiredArgumentMissingError, UnknownArgumentError
from .utils import Namespace

logger = logging.getLogger(__name__)

NUMERIC = r"[-+]?(?:\d*\.\d+|\d+)"


class ParseResult(NamedTuple):
    """
    outcome of parsing one invocation.

    - options: frozen Namespace of option values.
    - positionals: argument name -> value, in declaration order.
    - remaining: tokens left over after both parsers ran.
    - unknown: switch-shaped tokens among the option parser's leftovers.
    """
    options: Namespace
    positionals: dict
    remaining: list
    unknown: list


class Arguments:
    """
    Sequence parser for positional arguments.

    - arguments with a default start out assigned (a copy of the default);
    - required arguments without a default must each receive a token;
    - parsing stops as soon as the tokens run out.
    """
    NO_OR_SKIP = re.compile(r"^--(no|skip)-([-\w]+)$")

    def __init__(self, arguments=()):
        self._declared = list(arguments)
        self._assigns = {}
        self._non_assigned_required = []
        self._pile = deque()

        for argument in self._declared:
            if argument.default is not None:
                self._assigns[argument.human_name] = copy.deepcopy(argument.default)
            elif argument.required:
                self._non_assigned_required.append(argument)

    @staticmethod
    def split(tokens):
        """
        split tokens into the leading run of non-switch tokens and the rest
        (everything from the first token starting with "-").
        """
        tokens = list(tokens)
        for index, token in enumerate(tokens):
            if token.startswith("-"):
                return tokens[:index], tokens[index:]
        return tokens, []

    def parse(self, tokens):
        logger.debug("parsing arguments %r from %r", [argument.name for argument in self._declared], tokens)
        self._pile = deque(tokens)

        for argument in self._declared:
            if not self._pile:
                break
            if argument in self._non_assigned_required:
                self._non_assigned_required.remove(argument)
            self._assigns[argument.human_name] = self._parse_value(argument.type, argument.human_name)

        self._check_requirement()
        return dict(self._assigns)

    @property
    def remaining(self):
        return list(self._pile)

    def _peek(self):
        return self._pile[0] if self._pile else None

    def _shift(self):
        return self._pile.popleft()

    def _unshift(self, tokens):
        self._pile.extendleft(reversed(tokens))

    def _current_is_value(self):
        return self._pile and not re.match(r"^-{1,2}\S+", self._pile[0])

    def _no_or_skip(self, token):
        """
        the name behind a --no-name / --skip-name spelling, else None.
        """
        match = self.NO_OR_SKIP.match(token)
        return match[2] if match else None

    def _declaration(self, name):
        for argument in self._declared:
            if argument.human_name == name:
                return argument
        return None

    def _parse_value(self, type, name):
        return getattr(self, "_parse_%s" % type)(name)

    def _check_enum(self, name, value):
        declaration = self._declaration(name)
        if declaration is not None and declaration.enum and value not in declaration.enum:
            raise MalformattedArgumentError(
                "expected %r to be one of %s; got %s" % (name, ", ".join(map(str, declaration.enum)), value),
                input=value,
                choices=declaration.enum,
                hint="pick one of: %s" % ", ".join(map(str, declaration.enum)),
            )
        return value

    def _parse_string(self, name):
        return self._check_enum(name, self._shift())

    def _parse_numeric(self, name):
        token = self._peek()
        if not re.fullmatch(NUMERIC, token):
            raise MalformattedArgumentError(
                "expected numeric value for %r; got %r" % (name, token),
                input=token,
                hint="pass a number such as 3, -2 or 0.5",
            )
        token = self._shift()
        return self._check_enum(name, float(token) if "." in token else int(token))

    def _parse_array(self, name):
        values = []
        while self._current_is_value():
            values.append(self._shift())
        return values

    def _parse_hash(self, name):
        values = {}
        while self._current_is_value():
            token = self._peek()
            if ":" not in token:
                raise MalformattedArgumentError(
                    "expected key:value pairs for %r; got %r" % (name, token),
                    input=token,
                    hint="write each entry as key:value",
                )
            key, value = self._shift().split(":", 1)
            if key in values:
                raise MalformattedArgumentError(
                    "you can't specify %r more than once in %r; got %s:%s and %s:%s" % (
                        key, name, key, values[key], key, value
                    ),
                    input=key,
                )
            values[key] = value
        return values

    def _missing_names(self):
        return [argument.human_name for argument in self._non_assigned_required]

    def _check_requirement(self):
        if not self._non_assigned_required:
            return
        kind = type(self).__name__.lower()
        names = "', '".join(self._missing_names())
        raise RequiredArgumentMissingError(
            "no value provided for required %s '%s'" % (kind, names),
            missing=tuple(self._missing_names()),
        )


class Options(Arguments):
    """
    Switch parser.

    parameters
    - options: mapping of name -> Option (declaration order is kept for help only).
    - defaults: values assigned before parsing; they also satisfy the
      required check of the options they name.
    - stop_on_unknown: the first token that is not a registered switch ends
      option parsing; it and every later token go to `remaining` unmodified.
    - disable_required_check: skip the required-option check (help uses this).
    """
    LONG = re.compile(r"^(--\w+(?:-\w+)*)$")
    SHORT = re.compile(r"^(-[a-z])$", re.IGNORECASE)
    EQ = re.compile(r"^(--\w+(?:-\w+)*|-[a-z])=(.*)$", re.IGNORECASE | re.DOTALL)
    SHORT_SQ = re.compile(r"^-([a-z]{2,})$", re.IGNORECASE)
    SHORT_NUM = re.compile(r"^(-[a-z])(%s)$" % NUMERIC, re.IGNORECASE)
    UNKNOWN = re.compile(r"^--?(?:(?!--).)*$", re.DOTALL)
    END = "--"

    def __init__(self, options=None, defaults=None, stop_on_unknown=False, disable_required_check=False):
        options = dict(options or {})
        super().__init__(options.values())
        self._stop_on_unknown = stop_on_unknown
        self._disable_required_check = disable_required_check
        self._parsing_options = True
        self._treated_as_value = False
        self._stopped_at = None
        self._terminator = None
        self._switches = {}
        self._shorts = {}
        self._extra = []

        for key, value in (defaults or {}).items():
            self._assigns[str(key)] = value
            if (option := options.get(key)) in self._non_assigned_required:
                self._non_assigned_required.remove(option)

        for option in options.values():
            self._switches[option.switch_name] = option
            for alias in option.aliases:
                self._shorts.setdefault(alias, option.switch_name)

    @staticmethod
    def to_switches(options):
        """
        render a mapping back into a switch string.

        True -> --key, lists -> --key a b, dicts -> --key k:v, None/False dropped.
        """
        parts = []
        for key, value in options.items():
            match value:
                case True:
                    parts.append("--%s" % key)
                case None | False:
                    continue
                case list() | tuple():
                    parts.append("--%s %s" % (key, " ".join(map(repr, value))))
                case dict():
                    parts.append("--%s %s" % (key, " ".join("%s:%s" % item for item in value.items())))
                case _:
                    parts.append("--%s %r" % (key, value))
        return " ".join(parts)

    @property
    def remaining(self):
        return list(self._extra)

    @property
    def terminator(self):
        """index in remaining of the "--" that ended option parsing, else None."""
        return self._terminator

    def parse(self, tokens):
        logger.debug("parsing options from %r", tokens)
        self._pile = deque(tokens)
        self._parsing_options = True
        self._treated_as_value = False

        while self._peek() is not None:
            if not self._is_parsing_options():
                self._extra.append(self._shift())
                continue

            looks_like_switch, registered = self._current_is_switch()
            token = self._shift()

            if registered:
                if match := self.SHORT_SQ.match(token):
                    self._unshift(["-" + letter for letter in match[1]])
                    continue
                if match := self.EQ.match(token) or self.SHORT_NUM.match(token):
                    self._unshift([match[2]], value=True)
                else:
                    match = self.LONG.match(token) or self.SHORT.match(token)

                switch = self._normalize_switch(match[1])
                option = self._switch_option(switch)
                self._assigns[option.human_name] = self._parse_peek(switch, option)
            elif self._stop_on_unknown:
                self._parsing_options = False
                self._stopped_at = len(self._extra)
                self._extra.append(token)
                while self._pile:
                    self._extra.append(self._shift())
                break
            elif looks_like_switch:
                self._extra.append(token)
                while self._pile and not self._pile[0].startswith("-"):
                    self._extra.append(self._shift())
            else:
                self._extra.append(token)

        if not self._disable_required_check:
            self._check_requirement()

        assigns = Namespace(self._assigns)
        logger.debug("parsed options %r, remaining %r", assigns, self._extra)
        return assigns

    def unknown(self):
        """
        switch-shaped leftovers seen before option parsing stopped, either at
        "--" or at the first unknown token under stop_on_unknown (a token with a
        later "--" inside it is not a switch).
        """
        checked = self._extra if self._stopped_at is None else self._extra[:self._stopped_at]
        return [token for token in checked if self.UNKNOWN.match(token)]

    def check_unknown(self):
        unknown = self.unknown()
        if unknown:
            raise UnknownArgumentError(
                "unknown switches '%s'" % ", ".join(unknown),
                unknown=tuple(unknown),
                hint="remove them, or put them after '--' to pass them through",
            )

    def _peek(self):
        token = super()._peek()
        if self._parsing_options and token == self.END and not self._treated_as_value:
            self._parsing_options = False
            self._stopped_at = self._terminator = len(self._extra)
        return token

    def _unshift(self, tokens, value=False):
        super()._unshift(tokens)
        self._treated_as_value = value

    def _shift(self):
        self._treated_as_value = False
        return super()._shift()

    def _is_parsing_options(self):
        self._peek()
        return self._parsing_options

    def _is_last(self):
        return not self._pile or self._pile[0] == self.END

    def _current_is_value(self):
        if self._treated_as_value:
            return True
        return bool(self._pile) and self._pile[0] != self.END and bool(super()._current_is_value())

    def _current_is_switch(self):
        """
        classify the head token: (looks like a switch, is a registered switch).

        a bundle counts as registered only when every one of its letters is.
        """
        token = self._peek()
        for pattern in (self.LONG, self.SHORT, self.EQ, self.SHORT_NUM):
            if match := pattern.match(token):
                return True, self._is_switch(match[1])
        if match := self.SHORT_SQ.match(token):
            return True, all(self._is_switch("-" + letter) for letter in match[1])
        return False, False

    def _current_is_switch_formatted(self):
        token = self._peek()
        return any(
            pattern.match(token) for pattern in (self.LONG, self.SHORT, self.EQ, self.SHORT_NUM, self.SHORT_SQ)
        )

    def _is_switch(self, token):
        return self._switch_option(self._normalize_switch(token)) is not None

    def _switch_option(self, switch):
        """
        the option behind a switch, resolving --no-name / --skip-name to --name
        when nothing is registered under the negated spelling itself.
        """
        if name := self._no_or_skip(switch):
            return self._switches.get(switch) or self._switches.get("--" + name)
        return self._switches.get(switch)

    def _normalize_switch(self, token):
        return self._shorts.get(token, token).replace("_", "-")

    def _declaration(self, name):
        return self._switch_option(name)

    def _missing_names(self):
        return [option.switch_name for option in self._non_assigned_required]

    def _parse_peek(self, switch, option):
        """
        value of a recognised switch, looking at the token after it.

        when no value follows (stream end, "--", or another switch):
        - boolean: presence decides;
        - negated spelling: None;
        - optional string: lazy_default, then default, then the option's own name;
        - otherwise lazy_default, or a missing value error.
        """
        if not self._treated_as_value and (self._is_last() or self._current_is_switch_formatted()):
            if option.type == "boolean":
                pass
            elif self._no_or_skip(switch):
                return None
            elif option.type == "string" and not option.required:
                return option.lazy_default or option.default or option.human_name
            elif option.lazy_default is not None:
                return option.lazy_default
            else:
                raise MissingValueError(
                    "no value provided for option '%s'" % switch,
                    input=switch,
                    hint="pass a value after %s (for example: %s=<value>)" % (switch, switch),
                )

        if option in self._non_assigned_required:
            self._non_assigned_required.remove(option)
        return self._parse_value(option.type, switch)

    def _parse_string(self, name):
        if self._no_or_skip(name) and self._switch_option(name) is not self._switches.get(name):
            return None
        return super()._parse_string(name)

    def _parse_boolean(self, name):
        if self._current_is_value():
            if self._peek() in ("true", "TRUE", "t", "T"):
                self._shift()
                return True
            if self._peek() in ("false", "FALSE", "f", "F"):
                self._shift()
                return False
            return not self._no_or_skip(name)
        return name in self._switches or not self._no_or_skip(name)


__all__ = (
    "Arguments",
    "Options",
    "ParseResult",
    "NUMERIC",
)
