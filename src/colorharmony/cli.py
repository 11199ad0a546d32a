"""Command-line interface for colorharmony.

Provides commands for extracting palettes, transferring a palette from
one image onto another, posterizing, and listing compute backends.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from colorharmony.backends import get_dispatcher
from colorharmony.config import load_config
from colorharmony.errors import ColorHarmonyError
from colorharmony.export import ExportFormat, export_palette
from colorharmony.image_io import load_image, save_image
from colorharmony.logging import setup_logging
from colorharmony.models import (
    BackendKind,
    ClusteringMode,
    ColorModel,
    CorrespondenceStrategy,
    EngineConfig,
)
from colorharmony.palette import Palette
from colorharmony.transfer import TransferEngine

console = Console()

_STRATEGIES = {
    "rank": CorrespondenceStrategy.LUMINANCE_RANK,
    "optimal": CorrespondenceStrategy.OPTIMAL_ASSIGNMENT,
}


def _setup_logging(
    verbose: bool, log_file: Path | None = None, json_logs: bool = False
) -> None:
    """Configure logging from the shared command-line flags."""
    setup_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        verbose=verbose,
        log_file=log_file,
        json_logs=json_logs,
    )


def _engine_config(
    config_path: Path | None,
    model: str | None = None,
    mode: str | None = None,
    seed: int | None = None,
) -> EngineConfig:
    """Load the config file (if any) and apply command-line overrides."""
    config = load_config(config_path)
    update: dict = {}
    if model:
        update["color_model"] = ColorModel(model)
    if mode:
        update["clustering_mode"] = ClusteringMode(mode)
    if seed is not None:
        update["seed"] = seed
    return config.model_copy(update=update) if update else config


def _palette_table(palette: Palette, title: str) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Swatch")
    table.add_column("Hex")
    table.add_column("RGB")
    for i, color in enumerate(palette, start=1):
        hex_value = color.to_hex()
        r, g, b = color.rounded()
        table.add_row(str(i), Text("      ", style=f"on {hex_value}"), hex_value, f"{r}, {g}, {b}")
    return table


def _unexpected(exc: Exception, verbose: bool) -> None:
    console.print(f"[bold red]✗[/] Unexpected error: {escape(str(exc))}")
    if verbose:
        console.print_exception()
    sys.exit(1)


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML engine configuration",
)
verbose_option = click.option(
    "--verbose", "-v", is_flag=True, help="Enable detailed logging"
)
log_file_option = click.option(
    "--log-file",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Also write log records to this file",
)
json_logs_option = click.option(
    "--json-logs", is_flag=True, help="Emit log records as JSON lines"
)
k_option = click.option(
    "--colors",
    "-k",
    "k",
    type=click.IntRange(2, 512),
    default=8,
    show_default=True,
    help="Palette size",
)


@click.group()
@click.version_option(package_name="colorharmony")
def main() -> None:
    """colorharmony: palette extraction and palette transfer for images."""
    pass


@main.command()
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@k_option
@click.option(
    "--model",
    type=click.Choice([m.value for m in ColorModel]),
    help="Working color space for clustering",
)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in ClusteringMode]),
    help="Clustering strategy",
)
@click.option("--seed", type=click.IntRange(0), help="Random seed")
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the palette to this file",
)
@click.option(
    "--format",
    "export_format",
    type=click.Choice([f.value for f in ExportFormat]),
    help="Export format (default: from extension, else best for the color model)",
)
@config_option
@verbose_option
@log_file_option
@json_logs_option
def analyze(
    image_path: Path,
    k: int,
    model: str | None,
    mode: str | None,
    seed: int | None,
    export_path: Path | None,
    export_format: str | None,
    config_path: Path | None,
    verbose: bool,
    log_file: Path | None,
    json_logs: bool,
) -> None:
    """Extract a K-color palette from IMAGE_PATH.

    Example:

        \b
        colorharmony analyze photo.jpg -k 12 --export palette.gpl
    """
    _setup_logging(verbose, log_file, json_logs)

    try:
        config = _engine_config(config_path, model, mode, seed)
        image = load_image(image_path)
        engine = TransferEngine(config)
        with console.status(f"[bold blue]Analyzing {image_path.name}..."):
            result = engine.analyze_detailed(image, k)

        console.print(_palette_table(result.palette, f"{image_path.name}: {k} colors"))
        console.print(
            f"  {config.color_model.value} / {config.clustering_mode.value}, "
            f"{result.sample_size} of {result.pixel_count} pixels sampled, "
            f"{result.iterations} iterations"
        )
        if not result.converged:
            console.print("[bold yellow]⚠[/] Clustering stopped at its iteration cap")

        if export_path is not None:
            written = export_palette(
                result.palette, export_path, export_format, config.color_model
            )
            console.print(f"[bold green]✓[/] Palette written to [bold]{written}[/]")

    except ColorHarmonyError as e:
        console.print(f"[bold red]✗[/] Analysis failed: {escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[bold yellow]⚠[/] Analysis interrupted by user")
        sys.exit(130)
    except Exception as e:
        _unexpected(e, verbose)


@main.command()
@click.argument("target_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("source_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Where to write the recolored image",
)
@k_option
@click.option(
    "--strategy",
    type=click.Choice(sorted(_STRATEGIES)),
    default="rank",
    show_default=True,
    help="How source and target colors are paired",
)
@click.option("--seed", type=click.IntRange(0), help="Random seed")
@config_option
@verbose_option
@log_file_option
@json_logs_option
def transfer(
    target_path: Path,
    source_path: Path,
    output: Path,
    k: int,
    strategy: str,
    seed: int | None,
    config_path: Path | None,
    verbose: bool,
    log_file: Path | None,
    json_logs: bool,
) -> None:
    """Recolor TARGET_PATH with the palette of SOURCE_PATH.

    Example:

        \b
        colorharmony transfer photo.jpg painting.png -o recolored.png -k 16
    """
    _setup_logging(verbose, log_file, json_logs)

    try:
        config = _engine_config(config_path, seed=seed)
        engine = TransferEngine(config)
        target = load_image(target_path)
        source = load_image(source_path)

        with console.status("[bold blue]Extracting palettes..."):
            source_palette = engine.analyze(source, k)
            target_palette = engine.analyze(target, k)
        with console.status(f"[bold blue]Recoloring {target_path.name}..."):
            result = engine.resynthesize(
                target, source_palette, target_palette, _STRATEGIES[strategy]
            )
        written = save_image(result, output)
        console.print(f"[bold green]✓[/] Recolored image written to [bold]{written}[/]")

    except ColorHarmonyError as e:
        console.print(f"[bold red]✗[/] Transfer failed: {escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[bold yellow]⚠[/] Transfer interrupted by user")
        sys.exit(130)
    except Exception as e:
        _unexpected(e, verbose)


@main.command()
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Where to write the posterized image",
)
@k_option
@click.option("--seed", type=click.IntRange(0), help="Random seed")
@config_option
@verbose_option
@log_file_option
@json_logs_option
def posterize(
    image_path: Path,
    output: Path,
    k: int,
    seed: int | None,
    config_path: Path | None,
    verbose: bool,
    log_file: Path | None,
    json_logs: bool,
) -> None:
    """Reduce IMAGE_PATH to its own K-color palette."""
    _setup_logging(verbose, log_file, json_logs)

    try:
        config = _engine_config(config_path, seed=seed)
        engine = TransferEngine(config)
        image = load_image(image_path)
        with console.status(f"[bold blue]Posterizing {image_path.name}..."):
            palette = engine.analyze(image, k)
            result = engine.posterize(image, palette)
        written = save_image(result, output)
        console.print(f"[bold green]✓[/] Posterized image written to [bold]{written}[/]")

    except ColorHarmonyError as e:
        console.print(f"[bold red]✗[/] Posterize failed: {escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[bold yellow]⚠[/] Posterize interrupted by user")
        sys.exit(130)
    except Exception as e:
        _unexpected(e, verbose)


@main.command()
@verbose_option
def backends(verbose: bool) -> None:
    """List the compute backends available in this environment."""
    _setup_logging(verbose)

    available = set(get_dispatcher().available_kinds)
    table = Table(title="Compute backends")
    table.add_column("Backend")
    table.add_column("Available")
    for kind in (BackendKind.GPU, BackendKind.VECTORIZED, BackendKind.REFERENCE):
        table.add_row(kind.value, "[green]yes[/]" if kind in available else "[red]no[/]")
    console.print(table)


if __name__ == "__main__":
    main()
