"""
Program behavioral tests (dispatch, subcommands, help, start).

Scope
- End-to-end dispatch: positional/option separation, required values,
  unknown switches, ambiguity, aliases and the default command.
- Class-level settings: check_unknown_options, stop_on_unknown_option,
  strict_args_position, class arguments and class options.
- Subcommand delegation, --help forwarding and parent option propagation.
- Help rendering through rich into an in-memory console.
- start()/exec() boundaries and exit statuses.

Conventions
- Test method names follow CamelCase per project convention.
- Programs set __prog__ so banners do not depend on sys.argv.
"""

from __future__ import annotations

import io
import os
import unittest
from unittest import TestCase, mock

from rich.console import Console

from tiller import (
    Program,
    Argument,
    Option,
    SharedOption,
    command,
    argument,
    option,
    include_options,
    AmbiguousCommandError,
    MissingValueError,
    RequiredArgumentMissingError,
    UnknownArgumentError,
    UndefinedCommandError,
)


def capture():
    return Console(file=io.StringIO(), width=120, color_system=None, force_terminal=False)


class Greeter(Program, check_unknown_options=True):
    __prog__ = "app"

    @command("greet NAME", "say hello")
    @argument("name")
    @option("loud", "shout it", type="boolean", aliases="-l")
    def greet(self, name):
        return {"name": name, "loud": self.options.loud, "rest": self.args}


class Release(Program):
    __prog__ = "app"

    @command
    def deploy(self):
        return "deploy"

    @command
    def destroy(self):
        return "destroy"


class Remote(Program):
    __prog__ = "app"
    __map__ = {"rm": "remove"}

    @command("add NAME URL", "register a remote")
    @argument("name")
    @argument("url")
    @option("fetch", type="boolean", aliases="-f")
    def add(self, name, url):
        return {"name": name, "url": url, "fetch": self.options.fetch, "verbose": self.options.verbose}

    @command("remove NAME", "forget a remote")
    @argument("name")
    def remove(self, name):
        return ("removed", name)


class Git(Program):
    __prog__ = "app"
    __options__ = {"verbose": False}

    @command("status", "show status")
    def status(self):
        return "clean"


Git.subcommand("remote", Remote, description="manage remotes")


class TestDispatch(TestCase):
    """End-to-end dispatch."""

    def testPositionalAndSwitch(self):
        result = Greeter.dispatch(None, ["greet", "Alice", "--loud"])
        self.assertEqual(result, {"name": "Alice", "loud": True, "rest": []})

    def testMissingRequiredArgument(self):
        with self.assertRaises(MissingValueError) as context:
            Greeter.dispatch(None, ["greet", "--loud"])
        self.assertIn("name", str(context.exception))

    def testTerminatorIsNotAnArgumentValue(self):
        with self.assertRaises(RequiredArgumentMissingError) as context:
            Greeter.dispatch(None, ["greet", "--"])
        self.assertIn("name", str(context.exception))

    def testTokensAfterTheTerminatorAreArgumentValues(self):
        seen = []
        result = Greeter.dispatch(None, ["greet", "--", "-x"], None, {"on_instance": seen.append})
        self.assertEqual(result["name"], "-x")
        self.assertEqual(seen[0].parse_result.positionals, {"name": "-x"})
        self.assertEqual(seen[0].args, ["--"])

    def testUnknownSwitchIsRejected(self):
        with self.assertRaises(UnknownArgumentError) as context:
            Greeter.dispatch(None, ["greet", "Alice", "--unknown"])
        self.assertIn("--unknown", str(context.exception))

    def testAmbiguousAndUniquePrefixes(self):
        with self.assertRaises(AmbiguousCommandError):
            Release.dispatch(None, ["de"])
        self.assertEqual(Release.dispatch(None, ["dep"]), "deploy")

    def testPreParsedOptionMapping(self):
        result = Greeter.dispatch("greet", ["Alice"], {"loud": True})
        self.assertTrue(result["loud"])

    def testInstanceCallbackSeesTheInstance(self):
        seen = []
        Greeter.dispatch(None, ["greet", "Alice"], None, {"on_instance": seen.append})
        self.assertIsInstance(seen[0], Greeter)
        self.assertEqual(seen[0].parse_result.positionals, {"name": "Alice"})

    def testLeftoversAreAppendedUnlessStrict(self):
        class Loose(Program):
            @command("run_all", "run")
            def run_all(self, *rest):
                return rest

        class Strict(Program, strict_args_position=True):
            @command("run_all", "run")
            def run_all(self, *rest):
                return rest

        self.assertEqual(Loose.dispatch(None, ["run_all", "a", "--x", "b"]), ("a", "--x", "b"))
        self.assertEqual(Strict.dispatch(None, ["run_all", "a", "--x", "b"]), ("a",))

    def testStopOnUnknownOption(self):
        class Runner(Program, stop_on_unknown_option="exec_cmd", check_unknown_options=True):
            __options__ = {"verbose": False}

            @command("exec_cmd CMD", "run a command")
            def exec_cmd(self, *words):
                return self.options.verbose, words

        result = Runner.dispatch(None, ["exec_cmd", "--verbose", "ls", "--all", "-l"])
        self.assertEqual(result, (True, ("ls", "--all", "-l")))

    def testCheckUnknownOnlyForSomeCommands(self):
        class Picky(Program, check_unknown_options={"except": ["lenient"]}):
            @command
            def lenient(self, *rest):
                return rest

            @command
            def strict(self, *rest):
                return rest

        self.assertEqual(Picky.dispatch(None, ["lenient", "--odd"]), ("--odd",))
        with self.assertRaises(UnknownArgumentError):
            Picky.dispatch(None, ["strict", "--odd"])

    def testClassArgumentsBecomeAttributes(self):
        class Project(Program):
            __arguments__ = (Argument("root"),)

            @command("build TARGET", "build")
            @argument("target", default="all")
            def build(self, target):
                return self.root, target

        self.assertEqual(Project.dispatch(None, ["build", "/src", "lib"]), ("/src", "lib"))
        self.assertEqual(Project.dispatch(None, ["build", "/src"]), ("/src", "all"))

    def testCommonBacktraceOption(self):
        class Traced(Program, common_options="backtrace"):
            @command
            def noop(self):
                return self.options.backtrace

        self.assertIn("backtrace", Traced.class_options())
        self.assertTrue(Traced.dispatch(None, ["noop", "--backtrace"]))

    def testOptionKeywords(self):
        class Renderer(Program):
            __shared__ = (
                SharedOption("colour", type="boolean", groups="output"),
                SharedOption("dry-run", type="boolean"),
            )

            @command
            @include_options("dry-run", groups="output")
            def render(self):
                return self.option_kwds(groups="output"), self.option_kwds("dry-run")

        by_group, by_name = Renderer.dispatch(None, ["render", "--colour", "--dry-run"])
        self.assertEqual(by_group, {"colour": True})
        self.assertEqual(by_name, {"dry_run": True})


class TestSubcommands(TestCase):
    """Delegation to mounted programs."""

    def testDelegatesRemainingTokens(self):
        result = Git.dispatch(None, ["remote", "add", "origin", "git://x", "--fetch"])
        self.assertEqual(result["name"], "origin")
        self.assertEqual(result["url"], "git://x")
        self.assertTrue(result["fetch"])

    def testParentOptionsReachTheNestedProgram(self):
        result = Git.dispatch(None, ["remote", "add", "origin", "git://x", "--verbose"])
        self.assertTrue(result["verbose"])

    def testTerminatorReachesTheNestedProgram(self):
        class Mirror(Program):
            @command("add NAME URL", "register a mirror")
            @argument("name")
            @argument("url")
            @option("fetch", type="boolean", aliases="-f")
            def add(self, name, url, *rest):
                return self.options.fetch, self.args, rest

        class Repo(Program):
            pass

        Repo.subcommand("mirror", Mirror)
        fetch, leftover, rest = Repo.dispatch(None, ["mirror", "add", "o", "u", "--", "--fetch"])
        self.assertFalse(fetch)
        self.assertEqual(leftover, ["--", "--fetch"])
        self.assertEqual(rest, ("--fetch",))

    def testNestedAliases(self):
        self.assertEqual(Git.dispatch(None, ["remote", "rm", "origin"]), ("removed", "origin"))

    def testUnknownNestedNameFallsBackToTheDefaultCommand(self):
        class Shell(Program, default_command="run_line"):
            @command("run_line WORDS", "run one line")
            def run_line(self, *words):
                return words

        class Tool(Program):
            pass

        Tool.subcommand("repl", Shell)
        self.assertEqual(Tool.dispatch(None, ["repl", "ls", "-la"]), ("ls", "-la"))

    def testUnknownNestedNameIsAnErrorForHelp(self):
        with self.assertRaises(UndefinedCommandError):
            Git.dispatch(None, ["remote", "bogus"], None, {"console": capture()})

    def testAncestorNameIsRecorded(self):
        self.assertEqual(Remote.all_commands()["add"].ancestor_name, "remote")
        self.assertEqual(Remote.banner(Remote.all_commands()["add"]), "app remote add NAME URL")

    def testSubcommandIsListed(self):
        self.assertIn("remote", Git.subcommands())
        self.assertEqual(Git.all_commands()["remote"].description, "manage remotes")

    def testRegisterSetsUsage(self):
        class Tool(Program):
            pass

        Tool.register(Remote, "remotes", "remotes SUBCOMMAND", "manage remotes")
        self.assertEqual(Tool.all_commands()["remotes"].usage, "remotes SUBCOMMAND")


class TestHelp(TestCase):
    """Help rendering."""

    def testProgramHelpListsVisibleCommands(self):
        console = capture()
        Greeter.dispatch(None, ["help"], None, {"console": console})
        output = console.file.getvalue()
        self.assertIn("Commands:", output)
        self.assertIn("app greet NAME", output)
        self.assertIn("# say hello", output)
        self.assertIn("app help [COMMAND]", output)

    def testHiddenCommandsAreNotListed(self):
        class Quiet(Program):
            __prog__ = "app"

            @command("secret", "hidden", hide=True)
            def secret(self):
                pass

        console = capture()
        Quiet.print_help(console)
        self.assertNotIn("secret", console.file.getvalue())

    def testHelpFlagsRouteToHelp(self):
        console = capture()
        Greeter.dispatch(None, ["--help"], None, {"console": console})
        self.assertIn("Commands:", console.file.getvalue())

    def testNoArgumentsRunsTheDefaultCommand(self):
        console = capture()
        Greeter.dispatch(None, [], None, {"console": console})
        self.assertIn("Commands:", console.file.getvalue())

    def testCommandHelpShowsUsageAndOptions(self):
        class Exporter(Program):
            __prog__ = "app"

            @command("export FILE", "export data", long_description="write every record to FILE")
            @argument("file")
            @option("format", "output format", enum=["json", "csv"], default="json", aliases="-F")
            def export(self, file):
                pass

        console = capture()
        Exporter.dispatch(None, ["help", "export"], None, {"console": console})
        output = console.file.getvalue()
        self.assertIn("Usage:", output)
        self.assertIn("app export FILE", output)
        self.assertIn("-F, [--format=FORMAT]", output)
        self.assertIn("# Default: json", output)
        self.assertIn("# Possible values: json, csv", output)
        self.assertIn("write every record to FILE", output)

    def testGroupedClassOptions(self):
        class Styled(Program):
            __prog__ = "app"
            __options__ = (Option("colour", type="boolean", group="display"),)

        console = capture()
        Styled.print_help(console)
        self.assertIn("Display options:", console.file.getvalue())

    def testHelpForUnknownCommandFails(self):
        with self.assertRaises(UndefinedCommandError):
            Greeter.print_command_help("nothing", capture())

    def testSubcommandHelp(self):
        console = capture()
        Git.dispatch(None, ["remote", "--help"], None, {"console": console})
        self.assertIn("app remote add NAME URL", console.file.getvalue())

        console = capture()
        Git.dispatch(None, ["help", "remote", "add"], None, {"console": console})
        self.assertIn("Usage:", console.file.getvalue())
        self.assertIn("app remote add NAME URL", console.file.getvalue())


class TestStart(TestCase):
    """start() boundary."""

    def testReturnsTheResult(self):
        self.assertEqual(Release.start(["deploy"]), "deploy")

    def testFaultsExitWhenConfigured(self):
        class Strict(Release, exit_on_failure=True):
            pass

        with mock.patch("tiller.faults.console", capture()):
            with self.assertRaises(SystemExit) as context:
                Strict.start(["de"])
        self.assertEqual(context.exception.code, 1)

    def testFaultsArePrintedWithoutExiting(self):
        console = capture()
        with mock.patch("tiller.faults.console", console):
            self.assertIsNone(Release.start(["de"]))
        self.assertIn("ambiguous command de", console.file.getvalue())

    def testDebugReRaises(self):
        with self.assertRaises(AmbiguousCommandError):
            Release.start(["de"], {"debug": True})
        with mock.patch.dict(os.environ, {"TILLER_DEBUG": "1"}):
            with self.assertRaises(AmbiguousCommandError):
                Release.start(["de"])

    def testBrokenPipeExitsCleanly(self):
        class Piped(Program):
            @command
            def stream(self):
                raise BrokenPipeError()

        with self.assertRaises(SystemExit) as context:
            Piped.start(["stream"])
        self.assertEqual(context.exception.code, 0)

    def testOtherExceptionsPropagate(self):
        class Broken(Program):
            @command
            def crash(self):
                raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            Broken.start(["crash"])


if __name__ == "__main__":
    unittest.main()
