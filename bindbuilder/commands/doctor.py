import click
import os
from .. import config as config_module
from .. import toolchain
from ..cli_logger import logger
from ..decorators import handle_exceptions


@click.command()
@click.pass_context
@handle_exceptions
def doctor(ctx):
    """Check that git and cmake are installed and recent enough."""
    logger.info("Running environment check...")
    conf = config_module.load_config(path=ctx.obj["path"])
    env = config_module.BuildEnvironment.from_environ(
        os.environ, project_path=ctx.obj["path"], build_config=conf.get("build", {})
    )
    if toolchain.check_environment(env):
        logger.success("Environment check completed successfully.")
    else:
        logger.error("Environment check found issues. Please review the warnings above.")
        ctx.exit(1)
