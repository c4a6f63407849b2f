import click

# Import individual commands from modules
from walletid.cli.humanid import derive_cmd, check_cmd, analyze_cmd, collisions_cmd
from walletid.cli.registry import assign_cmd, lookup_cmd, resolve_cmd


@click.group()
@click.version_option(package_name="walletid")
def cli():
    """Derive and resolve human-readable IDs for wallet addresses."""
    pass


# Add derivation commands
cli.add_command(derive_cmd)
cli.add_command(check_cmd)
cli.add_command(analyze_cmd)
cli.add_command(collisions_cmd)

# Add store-backed commands
cli.add_command(assign_cmd)
cli.add_command(lookup_cmd)
cli.add_command(resolve_cmd)


if __name__ == "__main__":
    cli()
