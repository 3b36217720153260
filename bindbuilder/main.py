import click
from .commands import *


@click.group()
@click.option("--path", "-p", default=".", help="Path to the project directory.")
@click.pass_context
def cli(ctx, path):
    """bindbuilder: fetch, build and link native CMake dependencies."""
    ctx.obj = {"path": path}

cli.add_command(init)
cli.add_command(build)
cli.add_command(fetch)
cli.add_command(bind)
cli.add_command(clean)
cli.add_command(doctor)
cli.add_command(config)
cli.add_command(log)
cli.add_command(version)

if __name__ == '__main__':
    cli()
