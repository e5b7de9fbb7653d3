from mosaic_merge.cli.main import app

app(prog_name="mosaic-merge")
