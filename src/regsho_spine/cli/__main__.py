from regsho_spine.cli.app import app

app()
