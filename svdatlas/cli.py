"""svdatlas CLI: deduplicate peripheral register trees across SVD documents."""

import json
import logging
import os
import shutil
import sys

import click
from rich.console import Console
from rich.table import Table

from .config import AtlasConfig
from .corpus import ContentStore, ReferenceIndex
from .loader import find_inputs, load_device
from .pipeline import Pipeline

console = Console()


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose):
    """svdatlas: structural deduplication of SVD peripherals."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("inpath", required=False, envvar="SVDATLAS_INPUT", default=".")
@click.option("-d", "--keep-descriptions", is_flag=True, help="Don't strip descriptions")
@click.option("-o", "--origin", is_flag=True, help="Compare original .svd files instead of .patched")
@click.option("-n", "--show-name", is_flag=True, help="Embed device and peripheral names in entry ids")
@click.option("-p", "--compare-percent", is_flag=True, help="Append pairwise similarity to each group")
@click.option("--output", type=click.Path(), envvar="SVDATLAS_OUTPUT",
              help="Output root (default: yamls, or yamls_orig with --origin)")
@click.option("-x", "--exclude", multiple=True, help="Skip devices whose name starts with this prefix")
@click.option("--clean", is_flag=True, help="Remove the output root before the run")
@click.option("-f", "--format", "fmt", type=click.Choice(["table", "json"]), default="table")
def run(inpath, keep_descriptions, origin, show_name, compare_percent, output, exclude, clean, fmt):
    """Fingerprint every peripheral in INPATH and file it under its group."""
    cfg = AtlasConfig(
        input_dir=inpath,
        origin=origin,
        output_root=output,
        clean=clean,
        keep_descriptions=keep_descriptions,
        show_name=show_name,
        compare_percent=compare_percent,
    )
    if exclude:
        cfg.exclude_prefixes = tuple(exclude)

    if not os.path.isdir(cfg.input_dir):
        console.print(f"[red]Path not found:[/] {cfg.input_dir}")
        sys.exit(1)

    targets = find_inputs(cfg.input_dir, origin=cfg.origin)
    if not targets:
        console.print(f"[yellow]No {cfg.input_extension} files found.[/]")
        return

    root = cfg.output_dir
    try:
        if cfg.clean and os.path.isdir(root):
            shutil.rmtree(root)
        pipeline = Pipeline(
            ContentStore(root),
            ReferenceIndex(root, enabled=not cfg.show_name),
            cfg,
        )
        for t in targets:
            try:
                device = load_device(t)
            except Exception as e:
                console.print(f"[red]Error parsing {t}:[/] {e}")
                continue
            result = pipeline.process_device(device)
            if result.excluded:
                console.print(f"[dim]Skipping {device.name} ({t})[/]")
                continue
            console.print(f"Device [cyan]{device.name}[/] ({t})")
            console.print(
                f"  [dim]{len(result.records)} peripherals, {result.new_entries} new entries[/]"
            )
            for name in result.skipped:
                console.print(f"  [yellow]Skipped {name}: register tree not serializable[/]")
        summaries = pipeline.finalize()
    except OSError as e:
        where = e.filename or root
        console.print(f"[red]Output error:[/] {where}: {e.strerror or e}")
        sys.exit(1)

    if fmt == "json":
        click.echo(json.dumps([s.to_dict() for s in summaries], indent=2))
        return
    _print_group_table(summaries)


def _print_group_table(summaries):
    """Print a Rich table summarizing every group."""
    if not summaries:
        console.print("[yellow]No peripherals processed.[/]")
        return

    table = Table(title="svdatlas Groups", show_lines=False)
    table.add_column("Group", style="cyan", no_wrap=True)
    table.add_column("Instances", style="green")
    table.add_column("Unique", justify="right")
    table.add_column("Closest", justify="right")

    for s in summaries:
        if s.report_error:
            closest = "[red]missing[/]"
        elif s.report:
            # report is sorted ascending, the last pair is the closest
            closest = s.report[-1].split("%", 1)[0].strip() + "%"
        else:
            closest = "-"
        table.add_row(s.name, s.pattern, str(len(s.digests)), closest)

    console.print(table)


@main.command()
@click.option("-g", "--group", help="Filter to a specific group")
@click.option("-o", "--origin", is_flag=True, help="Read the origin-mode output root")
@click.option("--output", type=click.Path(), envvar="SVDATLAS_OUTPUT",
              help="Output root to list")
def corpus(group, origin, output):
    """List stored groups and entries."""
    cfg = AtlasConfig(origin=origin, output_root=output)
    store = ContentStore(cfg.output_dir)
    index = ReferenceIndex(cfg.output_dir)

    groups = [group] if group else store.list_groups()
    if not groups:
        console.print("[yellow]No groups found.[/]")
        return

    for g in groups:
        entries = store.list_entries(g)
        refs = index.read(g)
        console.print(f"\n[bold cyan]{g}[/] ({len(entries)} entries)")
        for entry in entries:
            users = [line.split(" ", 2)[1:] for line in refs if ReferenceIndex.digest_of(line) == entry]
            if users:
                names = ", ".join(f"{p}@{d}" for p, d in users)
                console.print(f"  {entry}: {names}")
            else:
                console.print(f"  {entry}")
