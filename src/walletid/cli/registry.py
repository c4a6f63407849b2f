import click

from walletid import config
from walletid.errors import WalletIdError
from walletid.lib.resolver import HumanIdResolver, JsonFileStore


def _store_option(func):
    return click.option(
        "--store",
        "store_path",
        type=click.Path(dir_okay=False, writable=True),
        default=None,
        envvar="WALLETID_STORE",
        help="JSON file holding wallet -> human ID mappings.",
    )(func)


def _open_resolver(store_path, **kwargs) -> HumanIdResolver:
    path = store_path or config.DEFAULT_STORE_PATH
    try:
        return HumanIdResolver(JsonFileStore(path), **kwargs)
    except WalletIdError as e:
        raise click.ClickException(str(e))


@click.command("assign")
@click.argument("wallet")
@_store_option
@click.option(
    "--policy",
    type=click.Choice(["extend", "raise"]),
    default=config.DEFAULT_COLLISION_POLICY,
    show_default=True,
    help="What to do when the derived ID belongs to another wallet.",
)
def assign_cmd(wallet, store_path, policy):
    """Assigns (or returns the existing) human ID for WALLET."""
    resolver = _open_resolver(store_path, policy=policy)
    try:
        human_id = resolver.get_human_id(wallet)
    except WalletIdError as e:
        raise click.ClickException(str(e))
    click.echo(human_id)


@click.command("lookup")
@click.argument("human_id")
@_store_option
@click.option("--no-scan", is_flag=True, help="Do not fall back to a linear scan.")
def lookup_cmd(human_id, store_path, no_scan):
    """Finds the wallet that owns HUMAN_ID."""
    resolver = _open_resolver(store_path, scan_fallback=not no_scan)
    wallet = resolver.find_wallet_by_human_id(human_id)
    if wallet is None:
        raise click.ClickException(f"No wallet found for '{human_id}'")
    click.echo(wallet)


@click.command("resolve")
@click.argument("identifier")
@_store_option
def resolve_cmd(identifier, store_path):
    """Resolves a wallet key, account hash or human ID."""
    resolver = _open_resolver(store_path)
    try:
        resolution = resolver.resolve_identifier(identifier)
    except WalletIdError as e:
        raise click.ClickException(str(e))

    click.echo(f"Kind:     {resolution.kind}")
    if not resolution.found:
        raise click.ClickException(f"Could not resolve '{identifier}'")
    click.echo(f"Wallet:   {resolution.wallet}")
    click.echo(f"Human ID: {resolution.human_id}")
    if resolution.migrated:
        click.echo("Migrated legacy account-hash record to full wallet key")
