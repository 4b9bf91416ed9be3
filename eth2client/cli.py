"""CLI entry point for eth2client."""

import asyncio
import json
import logging
import sys
from typing import Optional

import click

from .auto import connect
from .codec import decode_hex, encode_hex
from .config import BACKENDS, LOG_LEVELS, ClientConfig
from .exceptions import DecodingError, Eth2ClientError
from .metrics import start_metrics_server
from .spec.constants import DOMAIN_TYPES


def setup_logging(level: str) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if level.upper() != "DEBUG":
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def parse_domain_type(value: str) -> bytes:
    """Accept a domain name (``beacon_attester``, ``DOMAIN_RANDAO``) or 4 hex bytes."""
    if value.startswith("0x"):
        try:
            return decode_hex(value, 4)
        except DecodingError as e:
            raise click.BadParameter(f"invalid domain type {value}: {e.message}") from e
    name = value.upper()
    if not name.startswith("DOMAIN_"):
        name = f"DOMAIN_{name}"
    if name not in DOMAIN_TYPES:
        raise click.BadParameter(f"unknown domain type {value}")
    return DOMAIN_TYPES[name]


def echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


def run_with_client(ctx: click.Context, action):
    """Connect, run ``action(client)`` and close, reporting client errors."""
    config = ctx.obj["config"]

    async def session():
        client = await connect(config)
        try:
            return await action(client)
        finally:
            await client.close()

    try:
        return asyncio.run(session())
    except Eth2ClientError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="eth2client")
@click.option(
    "--address",
    help="Beacon node address, e.g. http://localhost:5052",
    envvar="ETH2CLIENT_ADDRESS",
)
@click.option(
    "--backend",
    type=click.Choice(BACKENDS, case_sensitive=False),
    help="Beacon node API flavour (auto-detected by default)",
    envvar="ETH2CLIENT_BACKEND",
)
@click.option(
    "--timeout",
    type=float,
    help="Request timeout in seconds",
    envvar="ETH2CLIENT_TIMEOUT",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Path to a YAML configuration file",
    envvar="ETH2CLIENT_CONFIG",
)
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level",
    envvar="ETH2CLIENT_LOG_LEVEL",
)
@click.option(
    "--metrics-port",
    type=int,
    help="Serve Prometheus metrics on this port",
    envvar="ETH2CLIENT_METRICS_PORT",
)
@click.pass_context
def cli(
    ctx: click.Context,
    address: Optional[str],
    backend: Optional[str],
    timeout: Optional[float],
    config_path: Optional[str],
    log_level: str,
    metrics_port: Optional[int],
):
    """eth2client - query beacon nodes through one normalized API."""
    setup_logging(log_level)
    overrides = {"address": address, "backend": backend, "timeout": timeout, "log_level": log_level}
    try:
        if config_path:
            config = ClientConfig.from_yaml(config_path, **overrides)
        else:
            config = ClientConfig.from_dict({"address": "http://localhost:5052"}, **overrides)
    except Eth2ClientError as e:
        raise click.ClickException(str(e)) from e
    if metrics_port:
        start_metrics_server(metrics_port)
    ctx.obj = {"config": config}


@cli.command()
@click.pass_context
def version(ctx: click.Context):
    """Print the node's software version."""

    async def action(client):
        return {"backend": client.name, "version": await client.node_version()}

    echo_json(run_with_client(ctx, action))


@cli.command()
@click.pass_context
def head(ctx: click.Context):
    """Print the current chain head."""

    async def action(client):
        return (await client.chain_head()).to_dict()

    echo_json(run_with_client(ctx, action))


@cli.command()
@click.argument("domain_type")
@click.argument("epoch", type=click.IntRange(min=0))
@click.pass_context
def domain(ctx: click.Context, domain_type: str, epoch: int):
    """Print the signing domain for DOMAIN_TYPE at EPOCH."""
    domain_bytes = parse_domain_type(domain_type)

    async def action(client):
        return {
            "domain_type": encode_hex(domain_bytes),
            "epoch": str(epoch),
            "domain": encode_hex(await client.domain(domain_bytes, epoch)),
        }

    echo_json(run_with_client(ctx, action))


@cli.command()
@click.argument("epoch", type=click.IntRange(min=0))
@click.option("--index", "indices", type=int, multiple=True, help="Validator index (repeatable)")
@click.pass_context
def duties(ctx: click.Context, epoch: int, indices: tuple[int, ...]):
    """Print attester and proposer duties for EPOCH."""
    wanted = list(indices) or None

    async def action(client):
        result = {}
        if hasattr(client, "attester_duties"):
            result["attester"] = [duty.to_dict() for duty in await client.attester_duties(epoch, wanted)]
        if hasattr(client, "proposer_duties"):
            result["proposer"] = [duty.to_dict() for duty in await client.proposer_duties(epoch, wanted)]
        return result

    echo_json(run_with_client(ctx, action))


@cli.command()
@click.option("--count", type=click.IntRange(min=1), help="Stop after this many updates")
@click.pass_context
def watch(ctx: click.Context, count: Optional[int]):
    """Print head updates until interrupted."""
    logger = logging.getLogger(__name__)

    async def action(client):
        done = asyncio.Event()
        seen = 0

        def on_head(event):
            nonlocal seen
            click.echo(
                json.dumps(
                    {
                        "slot": str(event.slot),
                        "block": encode_hex(event.block),
                        "state": encode_hex(event.state),
                        "epoch_transition": event.epoch_transition,
                    }
                )
            )
            seen += 1
            if count is not None and seen >= count:
                done.set()

        await client.on_beacon_chain_head_updated(on_head)
        logger.info(f"Watching head updates from {client.name} at {client.address}")
        await done.wait()

    try:
        run_with_client(ctx, action)
    except KeyboardInterrupt:
        logger.info("Shutting down")
        sys.exit(0)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
