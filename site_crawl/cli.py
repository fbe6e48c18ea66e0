#!/usr/bin/env python3
"""
Command-line entry point for the SiteCrawl crawler.

Commands:
  crawl     Crawl a site and print every admitted URL, one per line
  config    Show the effective configuration

Common options:
  --config PATH       Path to a YAML/JSON config (default: configs/default.yaml if present)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stderr only if omitted)
  --log-format FORMAT Logging format string

crawl options:
  -n, --workers INT   Number of concurrent fetches
  --timeout SEC       Per-request timeout (seconds)
  --user-agent UA     User-Agent header

Example:
  site-crawl crawl https://example.com -n 8
"""
import asyncio
import json
import sys
from pathlib import Path

import click

from site_crawl import __version__
from site_crawl.config import load_config
from site_crawl.engine import start_crawl
from site_crawl.logger import init_logging

CONTEXT_SETTINGS = dict(help_option_names=["--help", "-h"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _load(ctx, url, workers, timeout=None, user_agent=None):
    try:
        return load_config(
            ctx.obj['config_path'],
            seed_url=url,
            workers=workers,
            timeout=timeout,
            user_agent=user_agent,
        )
    except Exception as e:
        print_error(f'Invalid configuration: {e}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteCrawl, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a YAML or JSON config file.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file path (stderr only if omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Logging format string'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """SiteCrawl command group."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url', required=False)
@click.option(
    '--workers', '-n', 'workers',
    type=int,
    default=None,
    help='Number of concurrent fetches (default 1)'
)
@click.option(
    '--timeout', 'timeout',
    type=float,
    default=None,
    help='Per-request timeout in seconds (default 5)'
)
@click.option(
    '--user-agent', 'user_agent',
    default=None,
    help='User-Agent header'
)
@click.pass_context
def crawl(ctx, url, workers, timeout, user_agent):
    """Crawl URL and print every page found on its domain."""
    cfg = _load(ctx, url, workers, timeout, user_agent)
    try:
        asyncio.run(start_crawl(cfg, on_admit=click.echo))
    except Exception as e:
        print_error(f'Crawl failed: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.argument('url', required=False)
@click.option('--workers', '-n', 'workers', type=int, default=None)
@click.pass_context
def show_config(ctx, url, workers):
    """Show the effective configuration as JSON."""
    cfg = _load(ctx, url, workers)
    click.echo(json.dumps(cfg.model_dump(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    cli()
