#!/usr/bin/env python3
"""
CLI tool for the ElastiCache parameter group reconciler
Provides a plan/apply interface for cache parameter groups
"""

import json
import logging

import click
import yaml
from tabulate import tabulate

from config import get_config
from controller import Controller, ControllerConfig, SpecValidationError
from plugins.base import ResourceSpec
from plugins.reconcilers.elasticache import RESOURCE_TYPE
from plugins.registry import get_registry, register_builtin_plugins
from state import StateError, StateStore

logger = logging.getLogger(__name__)


def _load_resource_file(filename):
    """Read a resource file into a ResourceSpec"""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    if not isinstance(data, dict) or not isinstance(data.get("spec"), dict):
        raise click.BadParameter(
            "resource file must contain a 'spec' mapping", param_hint="FILENAME"
        )
    spec = data["spec"]
    return ResourceSpec(
        resource_type=data.get("resource_type", RESOURCE_TYPE), spec=spec
    )


def _build_controller(state_file):
    """Create a controller backed by the given state file"""
    config = get_config()
    register_builtin_plugins(config.plugins.enabled_reconciler_plugins)
    return Controller(
        store=StateStore(state_file or config.state.state_file),
        registry=get_registry(),
        config=ControllerConfig(plugin_configs=config.plugins.plugin_configs),
    )


def _report(result, success_message):
    """Print a reconciliation result and exit non-zero on failure"""
    if result.success:
        click.echo(success_message)
        return
    click.echo(f"Error: {result.error_message}", err=True)
    raise SystemExit(1)


@click.group()
@click.option(
    "--state-file",
    envvar="NO8S_STATE_FILE",
    type=click.Path(dir_okay=False),
    help="Path of the JSON state file",
)
@click.pass_context
def cli(ctx, state_file):
    """ElastiCache parameter group reconciler - plan and apply parameter groups"""
    config = get_config()
    logging.basicConfig(
        level=config.logging.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["state_file"] = state_file


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_context
def plan(ctx, filename):
    """Show the changes apply would make for a resource file"""
    resource = _load_resource_file(filename)
    controller = _build_controller(ctx.obj["state_file"])

    try:
        result = controller.plan(resource.resource_type, resource.spec)
    except (SpecValidationError, StateError) as e:
        raise click.ClickException(str(e))

    click.echo(result.plan_output)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_context
def apply(ctx, filename):
    """Create or update a resource from a YAML/JSON file"""
    resource = _load_resource_file(filename)
    controller = _build_controller(ctx.obj["state_file"])

    try:
        result = controller.apply(resource.resource_type, resource.spec)
    except (SpecValidationError, StateError) as e:
        raise click.ClickException(str(e))

    click.echo(result.plan_output)
    _report(
        result,
        f"Apply complete! Resources: {result.resources_created} added, "
        f"{result.resources_updated} changed, {result.resources_deleted} destroyed.",
    )


@cli.command()
@click.argument("name")
@click.option("--resource-type", "-t", default=RESOURCE_TYPE, show_default=True)
@click.pass_context
def refresh(ctx, name, resource_type):
    """Re-read a tracked resource from AWS"""
    controller = _build_controller(ctx.obj["state_file"])
    try:
        result = controller.refresh(resource_type, name.lower())
    except (ValueError, StateError) as e:
        raise click.ClickException(str(e))
    _report(result, f"Refreshed {name.lower()}")


@cli.command()
@click.argument("name")
@click.option("--resource-type", "-t", default=RESOURCE_TYPE, show_default=True)
@click.confirmation_option(prompt="Are you sure you want to destroy this resource?")
@click.pass_context
def destroy(ctx, name, resource_type):
    """Delete a tracked resource"""
    controller = _build_controller(ctx.obj["state_file"])
    try:
        result = controller.destroy(resource_type, name.lower())
    except (ValueError, StateError) as e:
        raise click.ClickException(str(e))
    _report(result, f"Destroyed {name.lower()}")


@cli.command(name="import")
@click.argument("name")
@click.option("--resource-type", "-t", default=RESOURCE_TYPE, show_default=True)
@click.pass_context
def import_(ctx, name, resource_type):
    """Start tracking an existing parameter group"""
    controller = _build_controller(ctx.obj["state_file"])
    try:
        result = controller.import_resource(resource_type, name)
    except (ValueError, StateError) as e:
        raise click.ClickException(str(e))
    _report(result, f"Imported {name.lower()}")


@cli.command()
@click.argument("name")
@click.option("--resource-type", "-t", default=RESOURCE_TYPE, show_default=True)
@click.pass_context
def drift(ctx, name, resource_type):
    """Compare recorded state with the parameter group in AWS"""
    controller = _build_controller(ctx.obj["state_file"])
    try:
        result = controller.detect_drift(resource_type, name.lower())
    except (ValueError, StateError) as e:
        raise click.ClickException(str(e))

    if result.error_message:
        click.echo(f"Error: {result.error_message}", err=True)
        raise SystemExit(1)
    click.echo(result.drift_details)
    if result.has_drift:
        raise SystemExit(2)


@cli.command()
@click.argument("name")
@click.option("--resource-type", "-t", default=RESOURCE_TYPE, show_default=True)
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
@click.pass_context
def show(ctx, name, resource_type, output):
    """Show the recorded state of a resource"""
    store = StateStore(ctx.obj["state_file"] or get_config().state.state_file)
    try:
        record = store.get_resource(resource_type, name.lower())
    except StateError as e:
        raise click.ClickException(str(e))

    if record is None:
        raise click.ClickException(f"Resource {resource_type}/{name} is not tracked")

    if output == "json":
        click.echo(json.dumps(record, indent=2))
    elif output == "yaml":
        click.echo(yaml.dump(record, default_flow_style=False))
    else:
        state = record["state"] or {}
        click.echo(f"Name: {record['name']}")
        click.echo(f"Family: {state.get('family', 'N/A')}")
        click.echo(f"Description: {state.get('description', 'N/A')}")
        click.echo(f"Status: {record['status']}")
        click.echo(f"Message: {record.get('status_message') or 'N/A'}")
        click.echo(f"Generation: {record['generation']}")
        click.echo(f"Observed Generation: {record['observed_generation']}")

        parameters = state.get("parameter", [])
        if parameters:
            rows = [[p["name"], p["value"]] for p in parameters]
            click.echo(tabulate(rows, headers=["Parameter", "Value"], tablefmt="grid"))


@cli.command(name="list")
@click.pass_context
def list_(ctx):
    """List all tracked resources"""
    store = StateStore(ctx.obj["state_file"] or get_config().state.state_file)
    try:
        records = store.list_resources()
    except StateError as e:
        raise click.ClickException(str(e))

    headers = ["Type", "Name", "Status", "Generation", "Parameters", "Last Reconcile"]
    rows = []
    for record in records:
        state = record["state"] or {}
        rows.append(
            [
                record["resource_type"],
                record["name"],
                record["status"],
                record["generation"],
                len(state.get("parameter", [])),
                record.get("last_reconcile_time") or "Never",
            ]
        )

    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


@cli.command(name="plugins")
def plugins_():
    """List the registered reconciler plugins"""
    config = get_config()
    register_builtin_plugins(config.plugins.enabled_reconciler_plugins)
    registry = get_registry()

    rows = []
    for name in registry.list_reconciler_plugins():
        info = registry.get_reconciler_plugin_info(name) or {}
        plugin_config = registry.get_reconciler_plugin_config(name)
        rows.append(
            [
                name,
                ", ".join(info.get("resource_types", [])),
                "\n".join(f"{k}={v}" for k, v in sorted(plugin_config.items())),
            ]
        )

    click.echo(
        tabulate(rows, headers=["Plugin", "Resource Types", "Config"], tablefmt="grid")
    )


if __name__ == "__main__":
    cli()
