from tickerpipe.cli.main import app

app(prog_name="tickerpipe")
