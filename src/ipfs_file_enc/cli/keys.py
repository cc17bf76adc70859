import click

from ipfs_file_enc.lib.key_manager import KeyManager


@click.command("gen-key")
def gen_key():
    """Prints a new random 256bit key in multibase form."""
    click.echo(KeyManager.encode_key(KeyManager.generate_key()))
