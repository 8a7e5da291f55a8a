# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command Line Interface for stackup.
"""
import asyncio
import logging
import os

import click

from ..exceptions import StackupError
from ..MANAGERS.service_orchestrator import ServiceOrchestrator
from ..PARSERS.stack_parser import StackParser
from ..RUNNERS.dependency_resolver import DependencyResolver


@click.group()
@click.option('--file', '-f', default='stack.yml', help='Stack file path')
@click.option('--env-file', default=None, help='.env file used for ${VAR} substitution')
@click.option('--verbose', '-v', is_flag=True, help='Log every lifecycle step')
@click.pass_context
def cli(ctx, file, env_file, verbose):
    """
    Stackup - run a stack of in-process services.

    Services are initialized and started in dependency order and stopped in reverse.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    ctx.ensure_object(dict)
    ctx.obj['file'] = file
    ctx.obj['env_file'] = env_file


def _load_config(ctx):
    """
    Parses the stack file, exiting with an error message if it cannot be read.
    """
    path = ctx.obj['file']
    if not os.path.exists(path):
        click.echo(f"Error: {path} not found.")
        ctx.exit(1)
    parser = StackParser()
    try:
        if ctx.obj['env_file']:
            parser.load_env_file(ctx.obj['env_file'])
        return parser.parse(path)
    except StackupError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)


@cli.command()
@click.option('--reverse', is_flag=True, help='Print the stop order instead')
@click.pass_context
def order(ctx, reverse):
    """Print the order services start in."""
    config = _load_config(ctx)
    try:
        names = DependencyResolver().resolve_order(config)
    except StackupError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)
    for name in (reversed(names) if reverse else names):
        click.echo(name)


@cli.command()
@click.pass_context
def check(ctx):
    """Validate the stack file and its dependencies."""
    config = _load_config(ctx)
    try:
        DependencyResolver().resolve_order(config)
    except StackupError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)
    click.echo(f"OK ({len(config.services)} services)")


async def _serve(orchestrator: ServiceOrchestrator, once: bool):
    async with orchestrator:
        click.echo("Services started.")
        if not once:
            click.echo("Running... Press Ctrl+C to stop.")
            while True:
                await asyncio.sleep(1)
    click.echo("Services stopped.")


@cli.command()
@click.option('--once', is_flag=True, help='Stop right after a successful start')
@click.pass_context
def up(ctx, once):
    """Start services defined in the stack file."""
    config = _load_config(ctx)
    try:
        orchestrator = ServiceOrchestrator.from_config(config)
        asyncio.run(_serve(orchestrator, once))
    except KeyboardInterrupt:
        click.echo("\nServices stopped.")
    except StackupError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
