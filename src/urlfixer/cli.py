"""Command-line interface for urlfixer."""

import logging
import os
import sys

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from urlfixer.config import ConfigContext
from urlfixer.overrides import OverrideRuleSet, load_overrides, matches
from urlfixer.rewrite import RewriteDecision, RewriteEngine
from urlfixer.tracing import log_decision, start_queue_logging

# option name -> environment variable read by ConfigContext.from_env
CONFIG_ENV = {
    "storage_url": "MINIO_URL",
    "storage_bucket": "MINIO_BUCKET",
    "uploads_base_url": "UPLOADS_BASEURL",
    "uploads_url": "UPLOADS_URL",
    "subdomain_suffix": "SUBDOMAIN_SUFFIX",
    "home": "WP_HOME",
    "port": "NGINX_PORT",
    "tenant": "TENANT_ID",
}


def config_options(func):
    options = [
        click.option("--storage-url", envvar="MINIO_URL", help="Object storage endpoint URL (env: MINIO_URL)"),
        click.option("--storage-bucket", envvar="MINIO_BUCKET", help="Object storage bucket (env: MINIO_BUCKET)"),
        click.option(
            "--uploads-base-url",
            envvar="UPLOADS_BASEURL",
            help="Uploads base URL replaced by the storage prefix (env: UPLOADS_BASEURL)",
        ),
        click.option("--uploads-url", envvar="UPLOADS_URL", help="Current uploads directory URL (env: UPLOADS_URL)"),
        click.option(
            "--subdomain-suffix",
            envvar="SUBDOMAIN_SUFFIX",
            help="Label prepended to the base domain (env: SUBDOMAIN_SUFFIX)",
        ),
        click.option(
            "--home",
            envvar="WP_HOME",
            help="Site home URL; provides scheme and base domain (env: WP_HOME, default: http://localhost)",
        ),
        click.option("--port", envvar="NGINX_PORT", help="Local development port (env: NGINX_PORT)"),
        click.option("--tenant", envvar="TENANT_ID", help="Current tenant (site) id (env: TENANT_ID)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_config(**options) -> ConfigContext:
    environ = dict(os.environ)
    for name, env_name in CONFIG_ENV.items():
        value = options.get(name)
        if value is not None:
            environ[env_name] = value
    return ConfigContext.from_env(environ)


def _setup_logging(debug: bool, trace: bool):
    if debug:
        logging.basicConfig(level=logging.DEBUG)
        logging.getLogger().setLevel(logging.DEBUG)
    if trace:
        return start_queue_logging(level=logging.DEBUG if debug else logging.INFO)
    return None


@click.group()
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging")
@click.option("--trace", is_flag=True, default=False, help="Log every rewrite decision to stderr")
@click.version_option(package_name="urlfixer")
@click.pass_context
def main(ctx, debug, trace):
    """
    urlfixer - rewrite site and media URLs for multi-tenant deployments.

    Media under the uploads directory is moved to object storage, localhost
    URLs get the development port, and other hosts are moved onto the
    tenant subdomain. Override rules exempt URLs from rewriting.

    \b
    Examples:
        # Rewrite a media URL into the storage bucket
        urlfixer rewrite --storage-url https://store.example.com --storage-bucket media \\
            --uploads-base-url http://localhost:81/app/uploads/sites/3 --tenant 3 \\
            http://localhost:81/app/uploads/sites/3/2024/11/photo.jpg

        # Check an override rule
        urlfixer match 'oldsite.com/*' http://oldsite.com/page
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["trace"] = trace
    listener = _setup_logging(debug, trace)
    if listener is not None:
        ctx.call_on_close(listener.stop)


@main.command()
@config_options
@click.option(
    "--overrides",
    "overrides_file",
    envvar="URLFIXER_OVERRIDES_FILE",
    help="Override rules file, .py or one rule per line (env: URLFIXER_OVERRIDES_FILE)",
)
@click.option("--explain", is_flag=True, default=False, help="Show which rule rewrote each URL")
@click.argument("urls", nargs=-1)
@click.pass_context
def rewrite(ctx, overrides_file, explain, urls, **options):
    """Rewrite URLS (or stdin lines when none are given)."""
    config = build_config(**options)
    decisions: list[RewriteDecision] = []

    def trace(decision: RewriteDecision) -> None:
        decisions.append(decision)
        if ctx.obj.get("trace"):
            log_decision(decision)

    engine = RewriteEngine(config, OverrideRuleSet(load_overrides(overrides_file)), trace=trace)
    if not urls:
        urls = tuple(line.strip() for line in sys.stdin if line.strip())

    results = []
    for url in urls:
        before = len(decisions)
        result = engine.rewrite(url)
        decision = decisions[-1] if len(decisions) > before else RewriteDecision(url, result, "cached")
        results.append(decision)

    if not explain:
        for decision in results:
            click.echo(decision.result)
        return

    table = Table(box=box.SIMPLE)
    table.add_column("url", style="white")
    table.add_column("result", style="bold cyan")
    table.add_column("branch", style="magenta", no_wrap=True)
    table.add_column("rule", style="yellow")
    for decision in results:
        table.add_row(escape(decision.original), escape(decision.result), decision.branch, escape(decision.rule or ""))
    Console(width=200).print(table)


@main.command()
@click.argument("rule")
@click.argument("url")
def match(rule, url):
    """Check whether override RULE exempts URL (exit status 1 when it does not)."""
    if matches(rule, url):
        click.echo("match")
        return
    click.echo("no match")
    sys.exit(1)


@main.command("config")
@config_options
def show_config(**options):
    """Print the resolved configuration."""
    config = build_config(**options)
    table = Table(title="urlfixer configuration", box=box.SIMPLE, show_header=False)
    table.add_column("key", style="bold cyan", no_wrap=True)
    table.add_column("value", style="white")
    for key, value in config.as_dict().items():
        table.add_row(key, escape(value))
    Console(width=200).print(table)


if __name__ == "__main__":
    main()
