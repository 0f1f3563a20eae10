"""
Parser module behavioral tests (Arguments and Options).

Scope
- Validate positional consumption, coercion and required checks.
- Validate every switch syntax: long, short, equals, bundles, glued numerics,
  negation, and the "--" terminator.
- Validate the token accounting invariant (nothing lost, nothing duplicated).
- Validate unknown-switch detection and stop-on-unknown behavior.

Conventions
- Test method names follow CamelCase per project convention.
- Parsers are built directly from declarations, without a program class.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from tiller import (
    Argument,
    Option,
    Arguments,
    Options,
    MissingValueError,
    RequiredArgumentMissingError,
    MalformattedArgumentError,
    UnknownArgumentError,
)


def options(*declarations, **settings):
    return Options({option.human_name: option for option in declarations}, **settings)


class TestArguments(TestCase):
    """Positional sequence parsing."""

    def testConsumesInOrderAndKeepsTheRest(self):
        parser = Arguments([Argument("source"), Argument("target")])
        self.assertEqual(parser.parse(["a", "b", "c"]), {"source": "a", "target": "b"})
        self.assertEqual(parser.remaining, ["c"])

    def testMissingRequiredArgumentFails(self):
        parser = Arguments([Argument("source"), Argument("target")])
        with self.assertRaises(MissingValueError) as context:
            parser.parse(["a"])
        self.assertIn("target", str(context.exception))

    def testDefaultsFillMissingOptionals(self):
        parser = Arguments([Argument("source"), Argument("mode", default="fast")])
        self.assertEqual(parser.parse(["a"]), {"source": "a", "mode": "fast"})

    def testNumericCoercion(self):
        parser = Arguments([Argument("count", type="numeric"), Argument("ratio", type="numeric")])
        self.assertEqual(parser.parse(["3", "-0.5"]), {"count": 3, "ratio": -0.5})

    def testMalformedNumericFails(self):
        with self.assertRaises(MalformattedArgumentError):
            Arguments([Argument("count", type="numeric")]).parse(["three"])

    def testArrayTakesValueTokensUntilASwitch(self):
        parser = Arguments([Argument("files", type="array")])
        self.assertEqual(parser.parse(["a", "b", "--force"]), {"files": ["a", "b"]})
        self.assertEqual(parser.remaining, ["--force"])

    def testHashTakesKeyValuePairs(self):
        parser = Arguments([Argument("env", type="hash")])
        self.assertEqual(parser.parse(["a:1", "b:x:y"]), {"env": {"a": "1", "b": "x:y"}})

    def testHashRejectsBareTokensAndDuplicates(self):
        with self.assertRaises(MalformattedArgumentError):
            Arguments([Argument("env", type="hash")]).parse(["a:1", "b"])
        with self.assertRaises(MalformattedArgumentError):
            Arguments([Argument("env", type="hash")]).parse(["a:1", "a:2"])

    def testEnumIsEnforced(self):
        parser = Arguments([Argument("mode", enum=["fast", "slow"])])
        with self.assertRaises(MalformattedArgumentError):
            parser.parse(["medium"])

    def testSplitStopsAtTheFirstSwitch(self):
        self.assertEqual(Arguments.split(["a", "b", "-c", "d"]), (["a", "b"], ["-c", "d"]))
        self.assertEqual(Arguments.split(["a"]), (["a"], []))


class TestOptions(TestCase):
    """Switch parsing."""

    def testSpacedAndEqualsFormsAgree(self):
        spaced = options(Option("name")).parse(["--name", "value"])
        joined = options(Option("name")).parse(["--name=value"])
        self.assertEqual(dict(spaced), dict(joined))
        self.assertEqual(spaced.name, "value")

    def testEqualsValueMayLookLikeASwitch(self):
        self.assertEqual(options(Option("pattern")).parse(["--pattern=-x"]).pattern, "-x")

    def testBundledShortFlags(self):
        declared = (Option("a", type="boolean"), Option("b", type="boolean"))
        bundled = options(*declared).parse(["-ab"])
        separate = options(*declared).parse(["-a", "-b"])
        self.assertEqual(dict(bundled), {"a": True, "b": True})
        self.assertEqual(dict(bundled), dict(separate))

    def testBundleWithAnUnknownLetterStaysWhole(self):
        parser = options(Option("a", type="boolean"))
        parsed = parser.parse(["-ab"])
        self.assertNotIn("a", parsed)
        self.assertEqual(parser.remaining, ["-ab"])
        self.assertEqual(parser.unknown(), ["-ab"])

    def testAliasesResolveToTheOption(self):
        parsed = options(Option("force", type="boolean", aliases="-f")).parse(["-f"])
        self.assertIs(parsed.force, True)

    def testShortSwitchGluedToANumber(self):
        self.assertEqual(options(Option("n", type="numeric")).parse(["-n5"]).n, 5)

    def testBooleanNegation(self):
        declared = Option("verbose", type="boolean")
        self.assertIs(options(declared).parse(["--no-verbose"]).verbose, False)
        self.assertIs(options(declared).parse(["--skip-verbose"]).verbose, False)
        self.assertIs(options(declared).parse(["--verbose"]).verbose, True)
        self.assertIsNone(options(declared).parse([]).verbose)
        defaulted = Option("verbose", type="boolean", default=True)
        self.assertIs(options(defaulted).parse([]).verbose, True)

    def testBooleanAcceptsExplicitValues(self):
        declared = Option("verbose", type="boolean")
        self.assertIs(options(declared).parse(["--verbose", "false"]).verbose, False)
        self.assertIs(options(declared).parse(["--verbose", "t"]).verbose, True)

    def testBooleanLeavesOtherTokensAlone(self):
        parser = options(Option("verbose", type="boolean"))
        self.assertIs(parser.parse(["--verbose", "file"]).verbose, True)
        self.assertEqual(parser.remaining, ["file"])

    def testValuelessStringFallsBackToLazyDefaultThenName(self):
        self.assertEqual(options(Option("format", lazy_default="json")).parse(["--format"]).format, "json")
        self.assertEqual(options(Option("format", default="text")).parse(["--format"]).format, "text")
        self.assertEqual(options(Option("format")).parse(["--format"]).format, "format")

    def testValuelessNumericFails(self):
        with self.assertRaises(MissingValueError):
            options(Option("jobs", type="numeric")).parse(["--jobs"])

    def testRequiredOptionMustBeGiven(self):
        with self.assertRaises(RequiredArgumentMissingError) as context:
            options(Option("token", required=True)).parse([])
        self.assertIn("--token", str(context.exception))

    def testRequiredCheckCanBeDisabled(self):
        parsed = options(Option("token", required=True), disable_required_check=True).parse([])
        self.assertNotIn("token", parsed)

    def testDefaultsSatisfyRequiredOptions(self):
        declared = {"token": Option("token", required=True)}
        self.assertEqual(Options(declared, {"token": "abc"}).parse([]).token, "abc")

    def testArrayAndHashOptions(self):
        parser = options(Option("tags", type="array"), Option("env", type="hash"))
        parsed = parser.parse(["--tags", "a", "b", "--env", "k:v"])
        self.assertEqual(parsed.tags, ["a", "b"])
        self.assertEqual(parsed.env, {"k": "v"})

    def testUnderscoresInSwitchesAreNormalized(self):
        self.assertIs(options(Option("dry_run", type="boolean")).parse(["--dry_run"]).dry_run, True)

    def testEnumIsEnforced(self):
        with self.assertRaises(MalformattedArgumentError):
            options(Option("format", enum=["json", "text"])).parse(["--format", "xml"])

    def testTerminatorStopsOptionParsing(self):
        parser = options(Option("name"), Option("force", type="boolean"))
        parsed = parser.parse(["--force", "--", "--name", "x", "-f"])
        self.assertEqual(dict(parsed), {"force": True})
        self.assertEqual(parser.remaining, ["--", "--name", "x", "-f"])

    def testTerminatorIsNeverAValue(self):
        parser = options(Option("name"))
        self.assertEqual(parser.parse(["--name", "--", "x"]).name, "name")
        self.assertEqual(parser.remaining, ["--", "x"])

    def testTokensAreNeverLostOrDuplicated(self):
        parser = options(Option("name"), Option("tags", type="array"), Option("force", type="boolean"))
        tokens = ["a", "--name", "n", "--bogus", "b", "--tags", "x", "y", "--force", "--", "--name", "z"]
        parser.parse(tokens)
        consumed = ["--name", "n", "--tags", "x", "y", "--force"]
        self.assertEqual(parser.remaining, ["a", "--bogus", "b", "--", "--name", "z"])
        self.assertEqual(len(parser.remaining) + len(consumed), len(tokens))

    def testUnknownSwitchesAreReported(self):
        parser = options(Option("name"))
        parser.parse(["--bogus", "-x", "file", "--", "--after"])
        self.assertEqual(parser.unknown(), ["--bogus", "-x"])
        with self.assertRaises(UnknownArgumentError) as context:
            parser.check_unknown()
        self.assertIn("--bogus", str(context.exception))

    def testStopOnUnknownKeepsTheRestVerbatim(self):
        parser = options(Option("force", type="boolean"), stop_on_unknown=True)
        parsed = parser.parse(["--force", "run", "--force"])
        self.assertEqual(dict(parsed), {"force": True})
        self.assertEqual(parser.remaining, ["run", "--force"])

    def testToSwitches(self):
        rendered = Options.to_switches({"force": True, "skip": False, "name": "x", "tags": ["a", "b"]})
        self.assertEqual(rendered, "--force --name 'x' --tags 'a' 'b'")


if __name__ == "__main__":
    unittest.main()
