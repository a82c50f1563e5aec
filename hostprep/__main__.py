from hostprep.main import cli

cli()
