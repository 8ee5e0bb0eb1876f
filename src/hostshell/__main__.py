from hostshell.cli.app import app

app()
