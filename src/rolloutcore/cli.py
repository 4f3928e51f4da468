"""
rolloutcore CLI - progressive rollout of manifests onto a cluster.

Commands:
    rolloutcore deploy    Deploy manifests with the chosen strategy
    rolloutcore promote   Promote a canary or green deployment
    rolloutcore reject    Roll a canary or green deployment back
"""

from __future__ import annotations

from typing import Optional, Tuple

import click
import pydantic

from rolloutcore.actions import RolloutEngine
from rolloutcore.config import get_config
from rolloutcore.errors import RolloutError
from rolloutcore.logger import configure_logging


def _common_options(f):
    options = [
        click.argument("manifests", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False)),
        click.option("--namespace", "-n", help="Target namespace"),
        click.option(
            "--strategy",
            type=click.Choice(["basic", "canary", "blue-green"], case_sensitive=False),
            help="Deployment strategy",
        ),
        click.option(
            "--traffic-split-method",
            type=click.Choice(["pod", "smi"], case_sensitive=False),
            help="Canary traffic backend",
        ),
        click.option(
            "--route-method",
            type=click.Choice(["service", "ingress", "smi"], case_sensitive=False),
            help="Blue/green routing method",
        ),
        click.option("--percentage", type=int, help="Canary traffic percentage (0-100)"),
        click.option("--baseline-and-canary-replicas", type=int, help="Explicit canary replica count (0-100)"),
        click.option("--force", is_flag=True, default=None, help="Apply with --force"),
        click.option("--imagepullsecret", "image_pull_secrets", multiple=True, help="Image pull secret (repeatable)"),
        click.option("--annotation", "annotations", multiple=True, help="key=value annotation (repeatable)"),
        click.option("--kubectl-path", help="kubectl binary"),
        click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), help="Log level"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _run(action: str, manifests: Tuple[str, ...], annotations: Tuple[str, ...], **options) -> None:
    overrides = {k: v for k, v in options.items() if v not in (None, ())}
    if annotations:
        parsed = {}
        for item in annotations:
            if "=" not in item:
                raise click.BadParameter(f"Invalid annotation '{item}'. Use key=value", param_hint="--annotation")
            key, value = item.split("=", 1)
            parsed[key] = value
        overrides["annotations"] = parsed
    if "image_pull_secrets" in overrides:
        overrides["image_pull_secrets"] = list(overrides["image_pull_secrets"])

    try:
        config = get_config(action=action, **overrides)
    except pydantic.ValidationError as e:
        raise click.ClickException(str(e))

    configure_logging(config.log_level, config.log_format)
    try:
        RolloutEngine(config).run(list(manifests))
    except RolloutError as e:
        raise click.ClickException(str(e))
    click.echo(f"{action} completed")


@click.group()
@click.version_option(package_name="rolloutcore")
def main():
    """rolloutcore - canary and blue/green rollouts for Kubernetes."""
    pass


@main.command()
@_common_options
def deploy(manifests, annotations, **options):
    """Deploy MANIFESTS."""
    _run("deploy", manifests, annotations, **options)


@main.command()
@_common_options
def promote(manifests, annotations, **options):
    """Promote the canary or green variant of MANIFESTS."""
    _run("promote", manifests, annotations, **options)


@main.command()
@_common_options
def reject(manifests, annotations, **options):
    """Reject the canary or green variant of MANIFESTS."""
    _run("reject", manifests, annotations, **options)


if __name__ == "__main__":
    main()
