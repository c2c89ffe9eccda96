"""
CLI interface for GenStudio.

Developer entry point for running generation requests and inspecting the
price table without a host application.
"""

import asyncio
import math
import sys
from pathlib import Path
from typing import AsyncIterator, List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from genstudio.config.loader import StudioConfig, load_studio_config
from genstudio.core.errors import AppError, ValidationError
from genstudio.core.images import decode_data_uri, load_image_file
from genstudio.core.models import AspectRatio, GenerationResult, ImageSize, ModelId, RequestConfig
from genstudio.core.pricing import PRICING_TABLE, PricingTable, calculate_cost
from genstudio.core.sanitizer import PromptSanitizer
from genstudio.core.token_counter import CHARS_PER_TOKEN, TokenUsage, estimate_tokens
from genstudio.observability.logger import setup_logging
from genstudio.services import build_services

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

CLI_SESSION_ID = "cli"


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """GenStudio CLI."""
    if ctx.invoked_subcommand is None:
        console.print("GenStudio - Use --help to see available commands")


@app.command()
def generate(
    prompt: str = typer.Argument("", help="Prompt text (may be empty when images are given)"),
    image: Optional[List[Path]] = typer.Option(
        None, "--image", "-i", help="Input image file (repeatable)"
    ),
    model: ModelId = typer.Option(ModelId.GEMINI_3_FLASH, "--model", "-m", help="Model to use"),
    aspect_ratio: Optional[AspectRatio] = typer.Option(None, "--aspect-ratio", help="Image aspect ratio"),
    image_size: Optional[ImageSize] = typer.Option(None, "--image-size", help="Image resolution"),
    thinking_budget: Optional[int] = typer.Option(None, "--thinking-budget", help="Reasoning token budget"),
    max_output_tokens: Optional[int] = typer.Option(None, "--max-output-tokens", help="Output token ceiling"),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t", help="Sampling temperature"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Sampling seed"),
    system: Optional[str] = typer.Option(None, "--system", help="System instruction"),
    search: bool = typer.Option(False, "--search", help="Enable search grounding"),
    max_retries: Optional[int] = typer.Option(None, "--max-retries", help="Retry budget for transient errors"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache"),
    stream: bool = typer.Option(False, "--stream", help="Print text as it arrives (text only, uncached)"),
    strict: bool = typer.Option(False, "--strict", help="Reject prompts that fail sanitization"),
    max_prompt_tokens: Optional[int] = typer.Option(
        None, "--max-prompt-tokens", min=1, help="Truncate the prompt to about this many tokens"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write a generated image here"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Studio YAML config file"),
):
    """
    Run one generation request and print the result with its usage.
    """
    setup_logging("genstudio", default_level="WARNING")

    if stream and output is not None:
        console.print("[red]Error:[/] --output cannot be combined with --stream")
        sys.exit(EXIT_CODE_FAIL)

    try:
        settings = load_studio_config(str(config)) if config else StudioConfig()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    sanitizer = PromptSanitizer()
    try:
        if strict:
            prompt = sanitizer.validate(prompt)
        else:
            sanitized = sanitizer.sanitize(prompt)
            for violation in sanitized.violations:
                console.print(f"[yellow]Warning:[/] {violation}")
            prompt = sanitized.sanitized
        if max_prompt_tokens is not None:
            prompt = sanitizer.truncate_to_tokens(prompt, max_prompt_tokens)

        images = [_load_image(path) for path in (image or [])]
        request = RequestConfig(
            model=model,
            aspect_ratio=aspect_ratio,
            image_size=image_size,
            thinking_budget=thinking_budget,
            max_output_tokens=max_output_tokens,
            temperature=temperature,
            seed=seed,
            system_instruction=system,
            use_search=search,
            max_retries=max_retries,
            enable_cache=not no_cache,
            session_id=CLI_SESSION_ID,
        )

        services = build_services(settings)
        if stream:
            asyncio.run(_print_stream(services.orchestrator.stream(prompt, images, request)))
        else:
            result = asyncio.run(services.orchestrator.generate(prompt, images, request))
            _display_result(result, output)
    except AppError as e:
        console.print(f"[red]{e.title}:[/] {e.message}")
        for field_name, messages in (getattr(e, "fields", None) or {}).items():
            console.print(f"  {field_name}: {'; '.join(messages)}")
        sys.exit(EXIT_CODE_FAIL)
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    _display_usage(services.tracker.get_session_metrics(CLI_SESSION_ID))
    sys.exit(EXIT_CODE_PASS)


@app.command()
def models(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Studio YAML config file"),
):
    """List supported models and their prices per 1M tokens."""
    table = _pricing_table(config)

    output = Table(title="Models")
    output.add_column("Model")
    output.add_column("Kind")
    output.add_column("Input / 1M", justify="right")
    output.add_column("Output / 1M", justify="right")
    for model in ModelId:
        pricing = table.get_pricing(model)
        output.add_row(
            model.value,
            "image" if model.is_image_model else "text",
            f"${pricing.input_cost_per_1m}",
            f"${pricing.output_cost_per_1m}",
        )
    console.print(output)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def estimate(
    prompt: str = typer.Argument(..., help="Prompt text"),
    response_chars: int = typer.Option(0, "--response-chars", "-r", min=0, help="Expected response length"),
    model: ModelId = typer.Option(ModelId.GEMINI_3_FLASH, "--model", "-m", help="Model to price"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Studio YAML config file"),
):
    """
    Estimate tokens and cost for a prompt and expected response length.

    Uses the same character-based heuristic as usage tracking.
    """
    table = _pricing_table(config)
    usage = TokenUsage(
        prompt_tokens=estimate_tokens(prompt),
        completion_tokens=math.ceil(response_chars / CHARS_PER_TOKEN),
    )
    cost = calculate_cost(model, usage, table)

    console.print(f"\n[bold]Model:[/bold] {model.value}")
    console.print(f"Input tokens: {usage.prompt_tokens:,}")
    console.print(f"Output tokens: {usage.completion_tokens:,}")
    console.print(f"Estimated cost: {_format_cost(cost)}")
    sys.exit(EXIT_CODE_PASS)


def _pricing_table(config: Optional[Path]) -> PricingTable:
    if config is None:
        return PRICING_TABLE
    try:
        settings = load_studio_config(str(config))
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    return PRICING_TABLE.with_overrides(settings.pricing)


def _format_cost(amount: float) -> str:
    """Format sub-cent costs without rounding them to zero."""
    return f"${amount:,.6f}"


def _load_image(path: Path) -> str:
    payload = load_image_file(path)
    if not PromptSanitizer.validate_image_input(payload):
        raise ValidationError(f"Image rejected: {path}", {"image": ["not an accepted image payload"]})
    return payload


async def _print_stream(chunks: AsyncIterator[str]):
    async for text in chunks:
        console.print(text, end="", markup=False, highlight=False)
    console.print()


def _display_result(result: GenerationResult, output: Optional[Path]):
    if result.text:
        console.print(result.text)

    if result.image:
        if output is not None:
            output.write_bytes(decode_data_uri(result.image))
            console.print(f"[green]✓[/] Image written to {output}")
        else:
            console.print("[dim]Image returned; pass --output to save it.[/]")

    if result.grounding_sources:
        console.print("\n[bold]Sources[/bold]")
        for source in result.grounding_sources:
            console.print(f"- {source.title or source.uri}: {source.uri}")


def _display_usage(metrics):
    if metrics is None:
        return
    table = Table(title="Usage")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Requests", str(metrics.request_count))
    table.add_row("Input tokens", f"{metrics.total_input_tokens:,}")
    table.add_row("Output tokens", f"{metrics.total_output_tokens:,}")
    table.add_row("Cache hits", str(metrics.cache_hits))
    table.add_row("Estimated cost", _format_cost(metrics.estimated_cost))
    console.print(table)


if __name__ == "__main__":
    app()
