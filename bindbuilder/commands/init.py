import click
import os
import toml
from .. import config as config_module
from ..cli_logger import logger
from ..config import Profile
from ..decorators import handle_exceptions


def _prompt_for_input(prompt, default, validation_func=None, **kwargs):
    while True:
        value = click.prompt(prompt, default=default, **kwargs)
        if validation_func is None or validation_func(value):
            return value
        else:
            logger.warning(f"Invalid input for {prompt}. Please try again.")


@click.command()
@click.option('--non-interactive', is_flag=True, help='Run in non-interactive mode using default values.')
@click.option('--config-file', type=click.Path(exists=True), help='Path to a TOML file with configuration values.')
@click.option('--force', is_flag=True, help='Overwrite an existing bindbuilder.toml.')
@click.pass_context
@handle_exceptions
def init(ctx, non_interactive, config_file, force):
    """Initialize a new bindbuilder project."""
    path = ctx.obj["path"]
    config_path = os.path.join(path, config_module.CONFIG_FILE)
    if os.path.exists(config_path) and not force:
        if non_interactive or not click.confirm(f"{config_path} already exists. Overwrite it?", default=False):
            logger.warning(f"Keeping existing {config_path}. Use --force to overwrite it.")
            return

    logger.info("Initializing a new bindbuilder project.")
    default_name = os.path.basename(os.path.abspath(path)) or "my-project"

    if config_file:
        logger.info(f"Loading configuration from {config_file}")
        with open(config_file, 'r') as f:
            conf = toml.load(f)
    elif non_interactive:
        logger.info("Running in non-interactive mode with default values.")
        conf = config_module.default_config(default_name)
    else:
        logger.info("Please provide the following details:")
        name = _prompt_for_input("Project Name", default_name, validation_func=lambda v: bool(v.strip()))
        profile = _prompt_for_input(
            "Build Profile", Profile.RELEASE.value,
            type=click.Choice([p.value for p in Profile], case_sensitive=False),
        )
        generator = _prompt_for_input("CMake Generator (leave empty for CMake's default)", "", show_default=False)

        conf = config_module.default_config(name)
        conf["build"]["profile"] = Profile.parse(profile).value
        if generator.strip():
            conf["build"]["generator"] = generator.strip()

    os.makedirs(path, exist_ok=True)
    if config_module.save_config(conf, path=path):
        logger.success(f"bindbuilder project initialized successfully! Configuration saved to {config_path}")
        logger.info("Next steps: add [[dependency]] entries, then run 'bindbuilder doctor' and 'bindbuilder build'.")
    else:
        ctx.exit(1)
