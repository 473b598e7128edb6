from distcron.cli.app import app

app(prog_name="distcron")
