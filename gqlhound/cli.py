"""CLI interface for gqlhound.

Provides the ``scan`` command: collect inputs, run the extraction pipeline
and write the results as JSON (and optionally a Postman collection).
"""

import json
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

# Load .env before importing other gqlhound modules
# This ensures env vars are set before module-level code reads them
load_dotenv()

from gqlhound import __version__  # noqa: E402
from gqlhound.config import DEFAULT_CONCURRENCY, ExtractorConfig  # noqa: E402
from gqlhound.sources import DEFAULT_TIMEOUT  # noqa: E402


@click.group()
@click.version_option(version=__version__, prog_name="gqlhound")
def cli() -> None:
    """gqlhound - find GraphQL operations in JavaScript and TypeScript."""
    pass


@cli.command()
@click.argument("inputs", nargs=-1)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the JSON report here instead of stdout",
)
@click.option(
    "--batch",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File listing one input (path, glob or URL) per line",
)
@click.option(
    "--postman",
    is_flag=True,
    help="Also write a Postman collection next to --output",
)
@click.option(
    "--aggressive",
    is_flag=True,
    envvar="GQLHOUND_AGGRESSIVE",
    help="Enable low-confidence patterns for minified/bundled code",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=DEFAULT_CONCURRENCY,
    envvar="GQLHOUND_CONCURRENCY",
    show_default=True,
    help="Number of worker processes",
)
@click.option(
    "--verbose",
    is_flag=True,
    envvar="GQLHOUND_VERBOSE",
    help="Log per-input diagnostics and failed tasks",
)
@click.option(
    "--plugin",
    "plugins",
    multiple=True,
    envvar="GQLHOUND_PLUGINS",
    help="Extractor plugin as 'package.module:attribute'. Can specify multiple.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Seconds to wait for each remote download",
)
def scan(
    inputs: tuple[str, ...],
    output: Path | None,
    batch: Path | None,
    postman: bool,
    aggressive: bool,
    concurrency: int,
    verbose: bool,
    plugins: tuple[str, ...],
    timeout: float,
) -> None:
    """Extract GraphQL operations from scripts.

    INPUTS: Files, directories, glob patterns or http(s) URLs.
    """
    from gqlhound.export import build_postman_collection, postman_path, report_to_dict, write_json
    from gqlhound.extraction.plugins import load_plugin_spec
    from gqlhound.pipeline import ExtractionPipeline
    from gqlhound.sources import SourceSet, read_batch_file

    locators = list(inputs)
    if batch is not None:
        locators.extend(read_batch_file(batch))
    if not locators:
        raise click.UsageError("Provide at least one input or --batch FILE")
    if postman and output is None:
        raise click.UsageError("--postman needs --output")

    config = ExtractorConfig(
        aggressive=aggressive,
        concurrency=concurrency,
        verbose=verbose,
        plugins=",".join(plugins),
    )
    # Fail fast on bad plugin specs; workers load them again on their own
    for spec in config.plugins:
        try:
            load_plugin_spec(spec)
        except (ImportError, AttributeError, TypeError, ValueError) as e:
            raise click.BadParameter(str(e), param_hint="--plugin") from e

    with SourceSet(timeout=timeout, verbose=verbose) as sources:
        sources.add_all(locators)
        click.echo(f"Found {len(sources.tasks)} files to process", err=True)

        pipeline = ExtractionPipeline(config)
        operations = pipeline.run(sources.tasks)
        report = pipeline.report()
        report = report.model_copy(update={"errors": sources.errors + report.errors})

    if operations:
        click.echo(f"Extracted {len(operations)} operations", err=True)
    else:
        click.echo("No GraphQL operations found", err=True)
    if report.metadata.failed_count or sources.errors:
        click.echo(
            f"{report.metadata.failed_count + len(sources.errors)} inputs could not be processed",
            err=True,
        )

    data = report_to_dict(report)
    if output is None:
        click.echo(json.dumps(data, indent=2))
        return

    try:
        write_json(data, output)
        click.echo(f"Report saved to {output}", err=True)
        if postman:
            target = write_json(build_postman_collection(operations), postman_path(output))
            click.echo(f"Postman collection saved to {target}", err=True)
    except OSError as e:
        click.echo(f"Failed to write output: {e}", err=True)
        sys.exit(1)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
