import click
import os
import json
from .. import config as config_module
from ..cli_logger import logger

NO_CONFIG_MESSAGE = "Error: No bindbuilder.toml found. Please run 'bindbuilder init' first."


def _parse_value(value):
    """Reads ``value`` as a JSON literal (numbers, booleans, arrays), else keeps the string."""
    try:
        return json.loads(value)
    except ValueError:
        return value


@click.group()
@click.pass_context
def config(ctx):
    """View or edit the bindbuilder.toml configuration file."""
    pass


@config.command()
@click.pass_context
def view(ctx):
    """View the contents of the bindbuilder.toml file."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(NO_CONFIG_MESSAGE)
        return
    config_file_path = os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)
    try:
        with open(config_file_path, 'r') as f:
            click.echo(f.read())
    except IOError as e:
        logger.error(f"Error reading bindbuilder.toml at {config_file_path}: {e}")
        logger.info("Please check file permissions.")


@config.command()
@click.pass_context
def edit(ctx):
    """Edit the bindbuilder.toml file in your default editor."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(NO_CONFIG_MESSAGE)
        return
    config_file_path = os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)
    try:
        click.edit(filename=config_file_path)
    except click.ClickException as e:
        logger.error(f"Click error editing bindbuilder.toml: {e}")
        logger.info("This might indicate an issue with your editor configuration or environment variables.")


@config.command(name="list")
@click.pass_context
def list_(ctx):
    """List all configuration keys and values."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(NO_CONFIG_MESSAGE)
        return
    click.echo(json.dumps(conf, indent=4))


@config.command()
@click.argument('key')
@click.pass_context
def get(ctx, key):
    """Get a value from the bindbuilder.toml file."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(NO_CONFIG_MESSAGE)
        return

    value = conf
    try:
        for k in key.split('.'):
            value = value[k]
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in bindbuilder.toml")
        return
    click.echo(json.dumps(value, indent=4) if isinstance(value, (dict, list)) else value)


@config.command(name="set")
@click.argument('key')
@click.argument('value')
@click.pass_context
def set_(ctx, key, value):
    """Set a value in the bindbuilder.toml file (dotted keys, e.g. build.profile)."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(NO_CONFIG_MESSAGE)
        return

    keys = key.split('.')
    d = conf
    for k in keys[:-1]:
        d = d.setdefault(k, {})
        if not isinstance(d, dict):
            logger.error(f"Error: '{k}' in '{key}' is not a table")
            return
    d[keys[-1]] = _parse_value(value)

    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(f"Set '{key}' to '{value}'")


@config.command()
@click.argument('key')
@click.pass_context
def unset(ctx, key):
    """Remove a key from the bindbuilder.toml file."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(NO_CONFIG_MESSAGE)
        return

    keys = key.split('.')
    d = conf
    try:
        for k in keys[:-1]:
            d = d[k]
        del d[keys[-1]]
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in bindbuilder.toml")
        return
    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(f"Unset '{key}'")
