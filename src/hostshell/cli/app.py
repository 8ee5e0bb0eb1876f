"""Main CLI application."""

import typer

from hostshell.cli.commands import config, connect, history, serve, unbind

app = typer.Typer(
    name="hostshell",
    help="Interactive shells into a running Python host.",
    no_args_is_help=True,
)

serve.register(app)
connect.register(app)
history.register(app)
unbind.register(app)
config.register(app)


if __name__ == "__main__":
    app()
