"""docseq CLI entry point."""

from __future__ import annotations

import json
from pathlib import Path

import click

from docseq.core.config import (
    DEFAULT_CONFIG_PATH,
    load_numbering_config,
    make_numbering_config,
)
from docseq.core.models import NumberingConfig, SequenceSpec

_store_option = click.option(
    "--store",
    "store_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="JSON collection file holding the numbered documents.",
)
_partition_option = click.option(
    "--partition",
    "partition_key",
    default=None,
    help="Explicit partition key (defaults to the current one).",
)


@click.group()
@click.version_option(package_name="docseq")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    help="Numbering config file.",
)
@click.option("--json-logs", is_flag=True, default=False, help="Output logs as JSON.")
@click.option("--log-level", default="WARNING", help="Log level.")
@click.option(
    "--metrics-port",
    type=int,
    default=0,
    help="Prometheus metrics port (0=disabled).",
)
@click.pass_context
def cli(
    ctx: click.Context, config_path: Path, json_logs: bool, log_level: str, metrics_port: int
) -> None:
    """docseq: sequential document numbers from the command line."""
    from docseq.core.logging import configure_logging

    configure_logging(json_output=json_logs, level=log_level)

    if metrics_port > 0:
        from docseq.metrics.server import start_metrics_server

        start_metrics_server(metrics_port)

    try:
        ctx.obj = make_numbering_config(load_numbering_config(config_path))
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


def _spec(config: NumberingConfig, entity: str) -> SequenceSpec:
    try:
        return config.sequences[entity]
    except KeyError:
        known = ", ".join(sorted(config.sequences))
        raise click.BadParameter(f"unknown entity {entity!r} (known: {known})") from None


@cli.command()
@click.pass_obj
def sequences(config: NumberingConfig) -> None:
    """List the configured numbering families."""
    for entity, spec in sorted(config.sequences.items()):
        click.echo(
            f"{entity:<26} {spec.prefix:<9} {spec.partition.value:<11} "
            f"width={spec.width} field={spec.field}"
        )


@cli.command(name="next")
@click.argument("entity")
@_store_option
@_partition_option
@click.pass_obj
def next_(
    config: NumberingConfig, entity: str, store_path: Path, partition_key: str | None
) -> None:
    """Preview the next number for ENTITY without assigning it."""
    import asyncio

    from docseq.core.errors import NumberingError
    from docseq.core.identifiers import IdentifierGenerator
    from docseq.store.json_file import JsonFileStore

    spec = _spec(config, entity)
    generator = IdentifierGenerator(JsonFileStore(store_path, field=spec.field))
    try:
        number = asyncio.run(generator.next_for(spec, partition_key=partition_key))
    except (NumberingError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    click.echo(number)


@cli.command()
@click.argument("entity")
@_store_option
@_partition_option
@click.option("--data", default="{}", help="Document body as a JSON object.")
@click.pass_obj
def issue(
    config: NumberingConfig,
    entity: str,
    store_path: Path,
    partition_key: str | None,
    data: str,
) -> None:
    """Create a document for ENTITY and print its assigned number."""
    import asyncio

    from docseq.core.creation import NumberedCreator
    from docseq.core.errors import NumberingError
    from docseq.store.json_file import JsonFileStore

    spec = _spec(config, entity)
    try:
        document = json.loads(data)
    except ValueError as exc:
        raise click.BadParameter(f"--data is not valid JSON: {exc}") from None
    if not isinstance(document, dict):
        raise click.BadParameter("--data must be a JSON object")

    creator = NumberedCreator(
        JsonFileStore(store_path, field=spec.field), spec, retry=config.retry
    )
    try:
        stored = asyncio.run(creator.create(document, partition_key=partition_key))
    except (NumberingError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    click.echo(stored[spec.field])


@cli.command()
@click.argument("number")
@click.option("--entity", default=None, help="Entity family (guessed from the prefix if omitted).")
@click.pass_obj
def parse(config: NumberingConfig, number: str, entity: str | None) -> None:
    """Split NUMBER into prefix, partition and sequence."""
    from docseq.core.errors import MalformedExistingData
    from docseq.core.identifiers import parse_identifier

    if entity is not None:
        spec = _spec(config, entity)
    else:
        # Longest prefix first; a short tag must not shadow a longer one.
        matches = sorted(
            (s for s in config.sequences.values() if number.startswith(s.prefix)),
            key=lambda s: len(s.prefix),
            reverse=True,
        )
        if not matches:
            click.echo(f"Error: no configured prefix matches {number!r}", err=True)
            raise SystemExit(1)
        spec = matches[0]

    try:
        parsed = parse_identifier(number, spec.prefix, spec.width, spec.partition)
    except MalformedExistingData as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)

    click.echo(f"Entity   : {spec.entity}")
    click.echo(f"Prefix   : {parsed.prefix}")
    click.echo(f"Partition: {parsed.partition_key or '-'}")
    click.echo(f"Sequence : {parsed.sequence}")


@cli.command()
@click.argument("entity")
@_store_option
@click.pass_obj
def audit(config: NumberingConfig, entity: str, store_path: Path) -> None:
    """Report stored ENTITY numbers that break the canonical pattern.

    Exits with status 1 when any are found so the check can gate a deploy.
    """
    import asyncio

    from docseq.core.errors import MalformedExistingData, NumberingError
    from docseq.core.identifiers import parse_identifier
    from docseq.store.json_file import JsonFileStore

    spec = _spec(config, entity)
    store = JsonFileStore(store_path, field=spec.field)
    try:
        values = asyncio.run(store.values())
    except NumberingError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)

    malformed = []
    for value in values:
        try:
            parse_identifier(value, spec.prefix, spec.width, spec.partition)
        except MalformedExistingData:
            malformed.append(value)
    for value in malformed:
        click.echo(value)

    click.echo(f"{len(values)} numbers checked, {len(malformed)} malformed.", err=True)
    if malformed:
        raise SystemExit(1)
