from vibecord.cli.main import app

app()
