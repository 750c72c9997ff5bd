import typer

app = typer.Typer(help="Gmail history sync")


@app.command()
def sync():
    """Run one sync pass and print its status."""
    from .sync.pipeline import init_runtime, run_sync
    from .utils.settings import ConfigError

    try:
        init_runtime()
    except ConfigError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    result = run_sync()
    if not result.ok:
        typer.echo(f"An error occurred: {result.error.message}", err=True)
        raise typer.Exit(code=1)

    report = result.value
    for warning in report.warnings:
        typer.echo(f"warning: {warning}", err=True)
    typer.echo(report.message)


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8080):
    """Serve the HTTP trigger with uvicorn."""
    import uvicorn

    from .server import create_app

    uvicorn.run(create_app(), host=host, port=port, log_level="info", lifespan="on")


if __name__ == "__main__":
    app()
