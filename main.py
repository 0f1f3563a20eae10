from rich.pretty import pprint

from tiller import *

__prog__ = "demo"


class Remote(Program):
    @command("add NAME URL", "register a remote")
    @argument("name")
    @argument("url")
    @option("fetch", type="boolean", aliases="-f")
    def add(self, name, url):
        return {"remote": name, "url": url, "fetch": bool(self.options.fetch)}


class Demo(Program, exit_on_failure=True, check_unknown_options=True, common_options="backtrace"):
    __map__ = {("-g", "hi"): "greet"}
    __shared__ = (
        SharedOption("colour", "colour the output", type="boolean", groups="output"),
    )

    @command("greet NAME", "say hello")
    @argument("name")
    @option("loud", "shout it", type="boolean", aliases="-l")
    @include_options(groups="output")
    def greet(self, name):
        return name.upper() if self.options.loud else name


Demo.subcommand("remote", Remote, description="manage remotes")


if __name__ == '__main__':
    pprint(Demo.start())
