"""
Outermost run boundary for tiller programs.

Execution dispatches argv against a program and decides what a failure turns
into: re-raised (debug / raise_errors), logged with its traceback (backtrace),
or logged as one line followed by exit status 1. A broken pipe exits 0 and
SystemExit always passes through.

Context values (debug, backtrace, raise_errors) are looked up in order:
1. the option values of the constructed instance (--backtrace, ...);
2. the config mapping given to Execution;
3. environment variables TILLER_<KEY> ("1", "true", "yes", "on" are true).
"""
import logging
import os
import sys

from .utils import truthy

logger = logging.getLogger(__name__)


class Execution:
    ENV_PREFIXES = ("TILLER",)

    def __init__(self, program, args=(), config=None):
        self.program = program
        self.args = list(args)
        self.config = dict(config or {})
        self.instance = None

    def from_env(self, key):
        for prefix in self.ENV_PREFIXES:
            if (name := "%s_%s" % (prefix, key.upper())) in os.environ:
                return os.environ[name]
        return None

    def context_value(self, key):
        if self.instance is not None and key in self.instance.options:
            return self.instance.options[key]
        if key in self.config:
            return self.config[key]
        return self.from_env(key)

    def is_debug(self):
        return truthy(self.context_value("debug"))

    def is_backtrace(self):
        return self.is_debug() or truthy(self.context_value("backtrace"))

    def raises_errors(self):
        return self.is_debug() or truthy(self.context_value("raise_errors"))

    def _bind(self, instance):
        self.instance = instance

    def exec(self):
        """dispatch and map failures to the process outcome (see module docs)."""
        try:
            return self.program.dispatch(None, self.args, None, self.config | {"on_instance": self._bind})
        except BrokenPipeError:
            sys.exit(0)
        except Exception as error:
            if self.raises_errors():
                raise
            if self.is_backtrace():
                logger.error("%s", error, exc_info=error)
            else:
                logger.error("%s", error)
            sys.exit(1)


__all__ = (
    "Execution",
)
