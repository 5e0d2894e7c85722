import logging

import typer
from rich.console import Console
from rich.markup import escape

from function_agent.config import RetryPolicy

app = typer.Typer(name="function-agent", help="Prompt-driven tool calling against a local chat model.")
console = Console()

WEATHER_QUERY = "What's the weather like in {location}?"


def _setup_logging(verbose: bool, wirelog: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s | %(levelname)s | %(message)s")
    if wirelog:
        for name in ("openai", "httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.DEBUG)


def _build_registry(dummy_weather: bool = False):
    from function_agent.config import settings
    from function_agent.tools import ToolRegistry
    from function_agent.tools.weather_tools import create_dummy_weather_tools, create_weather_tools

    registry = ToolRegistry()
    if dummy_weather or not settings.weather_api_key:
        if not dummy_weather:
            console.print("[yellow]WEATHER_API_KEY not set, using dummy weather data.[/yellow]")
        registry.register_many(create_dummy_weather_tools())
    else:
        registry.register_many(create_weather_tools(settings.weather_api_key))
    return registry


def _build_agent(
    model: str = "",
    url: str = "",
    max_retries: int | None = None,
    retry_policy: RetryPolicy | None = None,
    max_turns: int | None = None,
    temperature: float | None = None,
    stream: bool = False,
    dummy_weather: bool = False,
):
    """Create a FunctionAgent wired to the configured model and the weather tools."""
    from function_agent.agents.console_callback import ConsoleCallback
    from function_agent.agents.function_agent import FunctionAgent
    from function_agent.config import AgentConfig, get_model_config
    from function_agent.services.llm_service import LLMService

    registry = _build_registry(dummy_weather)

    model_config = get_model_config("functions")
    if model:
        model_config.model = model
    if url:
        model_config.base_url = url
    llm = LLMService(model_config)

    config = AgentConfig.from_settings(
        max_retries=max_retries,
        retry_policy=retry_policy,
        max_turns=max_turns,
        temperature=temperature,
        stream=stream,
    )

    callback = ConsoleCallback(console)
    callback.print_tools(registry)
    return FunctionAgent(llm=llm, registry=registry, config=config, callback=callback)


def _run(agent, query: str) -> None:
    from function_agent.models.agent_schemas import AgentError

    console.print(f"[bold]Query:[/bold] {escape(query)}")
    console.print()
    try:
        result = agent.run(query)
    except AgentError as e:
        console.print(f"\n[red]{type(e).__name__}: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    # Plain answer on stdout for scripting; the panel was already shown by the callback.
    typer.echo(result.output)


@app.command()
def weather(
    location: str = typer.Option("", help="Location for the weather query (default from config)"),
    model: str = typer.Option("", help="Model name (default from config)"),
    url: str = typer.Option("", help="OpenAI-compatible server URL, e.g. http://localhost:11434/v1"),
    max_retries: int = typer.Option(None, "--max-retries", min=0, help="Retry budget"),
    retry_policy: RetryPolicy = typer.Option(None, "--retry-policy", help="Which turns spend the retry budget"),
    max_turns: int = typer.Option(None, "--max-turns", min=1, help="Turn limit for the errors_only policy"),
    temperature: float = typer.Option(None, help="Sampling temperature"),
    stream: bool = typer.Option(False, "--stream", help="Stream model output as it arrives"),
    dummy_weather: bool = typer.Option(False, "--dummy-weather", help="Use canned weather data"),
    wirelog: bool = typer.Option(False, "--wirelog", help="Log HTTP traffic to the model server"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable detailed logging"),
) -> None:
    """Ask the model for the current weather at a location."""
    from function_agent.config import settings

    _setup_logging(verbose, wirelog)
    agent = _build_agent(
        model=model,
        url=url,
        max_retries=max_retries,
        retry_policy=retry_policy,
        max_turns=max_turns,
        temperature=temperature,
        stream=stream,
        dummy_weather=dummy_weather,
    )
    _run(agent, WEATHER_QUERY.format(location=location or settings.weather_location))


@app.command()
def ask(
    query: str = typer.Argument(..., help="Question for the model"),
    model: str = typer.Option("", help="Model name (default from config)"),
    url: str = typer.Option("", help="OpenAI-compatible server URL, e.g. http://localhost:11434/v1"),
    max_retries: int = typer.Option(None, "--max-retries", min=0, help="Retry budget"),
    retry_policy: RetryPolicy = typer.Option(None, "--retry-policy", help="Which turns spend the retry budget"),
    max_turns: int = typer.Option(None, "--max-turns", min=1, help="Turn limit for the errors_only policy"),
    temperature: float = typer.Option(None, help="Sampling temperature"),
    stream: bool = typer.Option(False, "--stream", help="Stream model output as it arrives"),
    dummy_weather: bool = typer.Option(False, "--dummy-weather", help="Use canned weather data"),
    wirelog: bool = typer.Option(False, "--wirelog", help="Log HTTP traffic to the model server"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable detailed logging"),
) -> None:
    """Run an arbitrary query through the tool-calling loop."""
    _setup_logging(verbose, wirelog)
    agent = _build_agent(
        model=model,
        url=url,
        max_retries=max_retries,
        retry_policy=retry_policy,
        max_turns=max_turns,
        temperature=temperature,
        stream=stream,
        dummy_weather=dummy_weather,
    )
    _run(agent, query)


@app.command()
def tools(
    dummy_weather: bool = typer.Option(False, "--dummy-weather", help="Use canned weather data"),
    prompt: bool = typer.Option(False, "--prompt", help="Also print the rendered system prompt"),
) -> None:
    """List the registered tools."""
    from function_agent.agents.console_callback import ConsoleCallback
    from function_agent.prompts.prompt_layer import system_prompt

    registry = _build_registry(dummy_weather)
    ConsoleCallback(console).print_tools(registry)
    if prompt:
        console.print(system_prompt(registry), markup=False, highlight=False)


if __name__ == "__main__":
    app()
