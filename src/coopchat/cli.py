"""CLI for the coopchat command."""

import typer

from .config import DEFAULT_QUIESCENCE_SECONDS, DEFAULT_SERVER_URL, CoopSettings


app = typer.Typer(
    help="Shared AI sessions: one host, many clients, one combined prompt",
    add_completion=False,
)


@app.command()
def serve(
    port: int = typer.Option(8080, "--port", "-p", help="Port to run the coordinator on"),
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind to"),
):
    """
    Start the coordination point for a co-op session.

    The first participant to join becomes the host; everyone after that is a
    client.

    Examples:
        # Start on default port 8080
        coopchat serve

        # Bind to localhost only
        coopchat serve --host 127.0.0.1
    """
    import uvicorn
    from .coordinator.service import create_app

    typer.echo("Starting co-op coordinator")
    typer.echo(f"   Listening: ws://{host if host != '0.0.0.0' else 'localhost'}:{port}/")

    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def join(
    server_url: str = typer.Option(
        DEFAULT_SERVER_URL, "--server-url", "-s",
        envvar="COOPCHAT_SERVER_URL", help="Coordinator WebSocket address",
    ),
    name: str = typer.Option(
        "User", "--name", "-n",
        envvar="COOPCHAT_USER_NAME", help="Display name in the session",
    ),
    quiescence: float = typer.Option(
        DEFAULT_QUIESCENCE_SECONDS, "--quiescence",
        envvar="COOPCHAT_QUIESCENCE",
        help="Seconds after the host's input before the round is sent automatically",
    ),
    completion_url: str = typer.Option(
        "", "--completion-url",
        envvar="COOPCHAT_COMPLETION_URL",
        help="OpenAI-compatible base URL used when hosting (echo if empty)",
    ),
    model: str = typer.Option(
        "gpt-4o-mini", "--model",
        envvar="COOPCHAT_MODEL", help="Model name sent to the completion endpoint",
    ),
    api_key: str = typer.Option(
        "", "--api-key", envvar="COOPCHAT_API_KEY", help="Bearer token for the completion endpoint",
    ),
):
    """Open the lobby panel and join a co-op session."""
    from .generation import HttpCompletion, echo_completion
    from .panel import CoopPanelApp

    settings = CoopSettings(
        server_url=server_url,
        user_name=name,
        quiescence_seconds=quiescence,
    )
    if completion_url:
        completion = HttpCompletion(completion_url, model=model, api_key=api_key or None)
    else:
        completion = echo_completion

    CoopPanelApp(settings=settings, completion=completion).run()


if __name__ == "__main__":
    app()
