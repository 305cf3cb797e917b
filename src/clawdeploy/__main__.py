from clawdeploy.cli.main import cli

cli(prog_name="clawdeploy")
