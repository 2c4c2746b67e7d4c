from modelserver_cli.main import run

run()
