"""
CHUNKHOUND CLI

Command-line front end for the Webpack bundle introspection engine.

Usage:
    chunkhound analyze main.3f2a.js                 # Offline bundle analysis
    chunkhound analyze main.js --map main.js.map    # ... with its source map
    chunkhound sourcemap main.js.map --sensitive    # List sources from a map
    chunkhound sourcemap app.map --extract ./src    # Write embedded sources to disk
    chunkhound detect snapshot.json                 # Analyse a runtime snapshot
    chunkhound hunt https://app.example.com         # Live scan
"""

import asyncio
import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from chunkhound import __version__
from chunkhound.core.engine import AssetReport, BundleReport, EngineConfig, WebpackEngine
from chunkhound.core.types import ScanResult, Severity
from chunkhound.scanners import ScanContext, WebpackBundleScanner
from chunkhound.webpack.view import RuntimeView

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logger = logging.getLogger("chunkhound")
    logger.handlers = [RichHandler(console=err_console, show_path=False, markup=False)]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def _emit_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


def safe_output_path(root: Path, source_path: str) -> Optional[Path]:
    """Where an embedded source may be written under ``root``, or None if it would escape"""
    cleaned = re.sub(r'^[a-zA-Z][\w+.-]*://', '', source_path or "")
    cleaned = cleaned.split("?", 1)[0]
    parts = [p for p in re.split(r'[\\/]+', cleaned) if p not in ("", ".", "..")]
    if not parts:
        return None
    parts = [re.sub(r'[<>:"|?*\x00-\x1f]', '_', p) for p in parts]

    root = root.resolve()
    target = root.joinpath(*parts).resolve()
    if target != root and root not in target.parents:
        return None
    return target


# =============================================================================
# MAIN CLI GROUP
# =============================================================================

@click.group()
@click.version_option(__version__, prog_name="chunkhound")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """
    \b
    CHUNKHOUND - Webpack bundle introspection
    Recovers modules, chunks, source files and hidden secrets from bundles.
    """
    config = EngineConfig.from_yaml(config_path) if config_path else EngineConfig()
    if verbose:
        config.verbose = True
    _setup_logging(config.verbose)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# ANALYZE - Offline bundle analysis
# =============================================================================

@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--map", "map_file", type=click.Path(exists=True, dir_okay=False), help="External source map file")
@click.option("--url", default=None, help="URL the bundle was served from (resolves relative references)")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_context
def analyze(ctx, file, map_file, url, as_json):
    """Analyse a downloaded JS bundle FILE."""
    engine = WebpackEngine(ctx.obj["config"])
    code = _read_text(file)
    map_text = _read_text(map_file) if map_file else None

    report = engine.analyze_asset(url or Path(file).resolve().as_uri(), code, map_text)

    if as_json:
        _emit_json(report.to_dict())
        return
    _render_asset(report)


def _render_asset(report: AssetReport) -> None:
    detection = report.detection
    if detection and detection.detected:
        headline = f"[green]Webpack {detection.version.value}[/green] ({detection.build_mode.value})"
    else:
        headline = "[dim]No Webpack runtime markers[/dim]"

    summary = [
        headline,
        f"Public path:      {report.public_path or '-'}",
        f"Async loading:    {'yes' if report.chunk_loading.has_async_loading else 'no'}",
        f"Chunk template:   {report.chunk_loading.naming_template or '-'}",
        f"Chunk refs:       {len(report.chunk_references)}",
        f"Source map:       {'inline' if report.map_is_inline else (report.source_map_url or '-')}",
        f"Source files:     {len(report.source_files)}",
    ]
    console.print(Panel("\n".join(summary), title=report.url, border_style="cyan"))

    if report.sensitive_files:
        table = Table(title="Sensitive Source Paths", show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Path")
        table.add_column("Embedded", justify="center")
        for record in report.sensitive_files:
            table.add_row(str(record.index), record.path, "yes" if record.has_content else "no")
        console.print(table)

    _render_sensitive(report.sensitive, "Bundle")
    for path, found in report.source_sensitive.items():
        _render_sensitive(found, path)

    if report.error:
        console.print(f"[red]Analysis error: {report.error}[/red]")


def _render_sensitive(found, title: str) -> None:
    if found.configs or found.reconstructed:
        table = Table(title=f"Secrets: {title}", show_header=True, header_style="bold")
        table.add_column("Kind", style="bold")
        table.add_column("Value")
        table.add_column("Offset", justify="right")
        for config in found.configs:
            table.add_row(config.category.value, config.value, str(config.offset), style=Severity.HIGH.color)
        for rebuilt in found.reconstructed:
            table.add_row(f"rebuilt/{rebuilt.technique.value}", rebuilt.value, str(rebuilt.offset),
                          style=Severity.MEDIUM.color)
        console.print(table)

    if found.debug:
        console.print(f"[dim]{title}: {len(found.debug)} debug markers[/dim]")


# =============================================================================
# SOURCEMAP - Decode a map and list / extract its sources
# =============================================================================

@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--sensitive", is_flag=True, help="Only list sensitive-looking paths")
@click.option("--extract", "extract_dir", type=click.Path(file_okay=False), help="Write embedded sources here")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_context
def sourcemap(ctx, file, sensitive, extract_dir, as_json):
    """Decode the Source Map FILE and list its original sources."""
    engine = WebpackEngine(ctx.obj["config"])
    decoder = engine.sourcemaps

    document = decoder.decode(_read_text(file))
    if document is None:
        reason = decoder.last_diagnostic.message if decoder.last_diagnostic else "invalid source map"
        err_console.print(f"[red]Could not decode {file}: {reason}[/red]")
        ctx.exit(1)

    files = decoder.list_source_files(document)
    if sensitive:
        files = decoder.filter_sensitive_paths(files)

    written = []
    if extract_dir:
        root = Path(extract_dir)
        for record in files:
            if not record.has_content:
                continue
            target = safe_output_path(root, record.path)
            if target is None:
                err_console.print(f"[yellow]Skipping unsafe path {record.path}[/yellow]")
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(record.content, encoding="utf-8")
            written.append(str(target))

    if as_json:
        _emit_json({
            "source_map": document.to_dict(),
            "statistics": decoder.statistics(document),
            "files": [f.to_dict() for f in files],
            "written": written,
        })
        return

    table = Table(title=f"{document.file or file}: {document.source_count} sources", header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Embedded", justify="center")
    for record in files:
        table.add_row(str(record.index), record.resolved_path, str(record.size_bytes),
                      "yes" if record.has_content else "no")
    console.print(table)
    if written:
        console.print(f"[green]Wrote {len(written)} files to {extract_dir}[/green]")


# =============================================================================
# DETECT - Runtime snapshot analysis
# =============================================================================

@cli.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_context
def detect(ctx, snapshot, as_json):
    """Detect Webpack in a JSON runtime SNAPSHOT and extract its module map."""
    try:
        data = json.loads(_read_text(snapshot))
    except json.JSONDecodeError as e:
        err_console.print(f"[red]Invalid snapshot: {e}[/red]")
        ctx.exit(1)

    engine = WebpackEngine(ctx.obj["config"])
    report = engine.analyze_runtime(RuntimeView.from_snapshot(data))

    if as_json:
        _emit_json(report.to_dict())
        return
    _render_bundle(report)


def _render_bundle(report: BundleReport) -> None:
    detection = report.detection
    if not detection.detected:
        console.print("[dim]No Webpack runtime detected.[/dim]")
        return

    features = ", ".join(k for k, v in detection.features.to_dict().items() if v)
    console.print(Panel(
        f"Version:     {detection.version.value}\n"
        f"Build mode:  {detection.build_mode.value}\n"
        f"Features:    {features}\n"
        f"Public path: {report.public_path or '-'}\n"
        f"Modules:     {len(report.modules)}",
        title="[green]Webpack detected[/green]",
        border_style="green",
    ))

    if report.modules:
        table = Table(title="Modules", header_style="bold cyan")
        table.add_column("Id")
        table.add_column("Kind")
        table.add_column("Size", justify="right")
        table.add_column("Deps", justify="right")
        table.add_column("Config", justify="center")
        for module in report.modules:
            table.add_row(module.id, module.kind.value, str(module.size_bytes),
                          str(len(module.dependencies)), "yes" if module.is_config_like else "")
        console.print(table)

    _render_sensitive(report.sensitive, "Inline scripts")


# =============================================================================
# HUNT - Live scan
# =============================================================================

@cli.command()
@click.argument("url")
@click.option("--timeout", "-t", type=int, default=None, help="HTTP timeout in seconds")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_context
def hunt(ctx, url, timeout, as_json):
    """Fetch URL, download its bundles and report what they leak."""
    config: EngineConfig = ctx.obj["config"]
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"

    scanner_config = {
        "timeout": timeout or config.timeout,
        "rate_limit": config.rate_limit,
        "probe_map_fallback": config.probe_map_fallback,
        "engine_config": config,
    }

    async def _run():
        result = ScanResult(target=url, module=WebpackBundleScanner.name, started_at=datetime.now())
        async with WebpackBundleScanner(scanner_config) as scanner:
            result.findings = [f async for f in scanner.scan(ScanContext.from_url(url))]
            result.requests_sent = scanner.requests_sent
        result.completed_at = datetime.now()
        return result

    if not as_json:
        console.print(f"\n[bright_green]Hunting bundles on [bold]{url}[/bold][/bright_green]\n")
    result = asyncio.run(_run())
    findings = result.findings

    if as_json:
        _emit_json([f.to_dict() for f in findings])
        return

    console.print(f"[dim]{result.requests_sent} requests in {result.duration:.1f}s[/dim]")
    if not findings:
        console.print("[dim]No findings.[/dim]")
        return

    counts = ", ".join(f"{n} {s.value}" for s, n in result.finding_count.items() if n)
    table = Table(title=f"Findings ({counts})", header_style="bold")
    table.add_column("Severity", style="bold")
    table.add_column("Title")
    table.add_column("URL", style="dim")
    for finding in findings:
        table.add_row(finding.severity.value.upper(), finding.title, finding.url, style=finding.severity.color)
    console.print(table)


# =============================================================================
# ENTRY POINT
# =============================================================================

def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
