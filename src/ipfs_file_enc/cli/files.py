import click
from pathlib import Path

from ipfs_file_enc.config import NodeConfig
from ipfs_file_enc.lib.errors import IpfsFileEncError
from ipfs_file_enc.lib.key_manager import KeyManager
from ipfs_file_enc.lib.links import gateway_urls
from ipfs_file_enc.lib.node_resolver import NodeResolver
from ipfs_file_enc.lib.pipeline import encrypt_and_put, get_decrypt


@click.command("share")
@click.argument("source_path", type=click.Path())
@click.option(
    "--key",
    envvar="IPFS_FILE_ENC_KEY",
    default="",
    help="A 256bit secret key, encoded with multibase (no key = random key).",
)
@click.option(
    "--random-key",
    is_flag=True,
    help="Use a randomly generated key (deprecated, this is the default).",
)
@click.option(
    "--api",
    "api_url",
    envvar="IPFS_FILE_ENC_API",
    default="",
    help="An IPFS node API to use (overrides defaults).",
)
def share(source_path, key, random_key, api_url):
    """Encrypts a file and adds the ciphertext to IPFS."""
    try:
        config = NodeConfig.from_env()
        secret = KeyManager.resolve_key(key, allow_random=True)
        click.echo(f"Sharing {source_path}...", err=True)
        link = encrypt_and_put(
            source_path, secret, node_url=api_url, resolver=NodeResolver(config)
        )
        key_text = KeyManager.encode_key(secret)
    except IpfsFileEncError as e:
        raise click.ClickException(str(e))

    global_url, local_url = gateway_urls(link, config)
    click.echo(f"Shared as:  {link}")
    click.echo(f"Key:  {key_text}")
    click.echo(f"Ciphertext on global gateway:  {global_url}")
    click.echo(f"Ciphertext on local gateway:  {local_url}")
    click.echo("")
    click.echo("Get, Decrypt with:")
    click.echo(f"    ipfs-file-enc download --key {key_text} {link} <filename>")
    click.echo("")


@click.command("download")
@click.argument("link")
@click.argument("destination_path", type=click.Path(dir_okay=False))
@click.option(
    "--key",
    envvar="IPFS_FILE_ENC_KEY",
    default="",
    help="The 256bit secret key the content was shared with (multibase).",
)
@click.option(
    "--random-key",
    is_flag=True,
    hidden=True,
    help="Not valid for download.",
)
@click.option(
    "--api",
    "api_url",
    envvar="IPFS_FILE_ENC_API",
    default="",
    help="An IPFS node API to use (overrides defaults).",
)
@click.option(
    "--truncate",
    is_flag=True,
    help="Truncate DESTINATION_PATH before writing instead of overwriting in place.",
)
def download(link, destination_path, key, random_key, api_url, truncate):
    """Fetches LINK from IPFS and decrypts it into DESTINATION_PATH."""
    if random_key:
        raise click.ClickException("cannot use --random-key with download")
    if not destination_path:
        raise click.ClickException("requires a destination path")

    try:
        secret = KeyManager.resolve_key(key, allow_random=False)
        click.echo(f"Getting {link}...", err=True)
        get_decrypt(
            link,
            Path(destination_path),
            secret,
            node_url=api_url,
            resolver=NodeResolver(NodeConfig.from_env()),
            truncate=truncate,
        )
    except IpfsFileEncError as e:
        raise click.ClickException(str(e))

    click.echo(f"write to: {destination_path}")
