import click

# Import individual commands from modules
from ipfs_file_enc.cli.files import share, download
from ipfs_file_enc.cli.keys import gen_key


@click.group()
def cli():
    """Encrypt files and share them over IPFS.

    \b
    ENCRYPT AND SEND
        ipfs-file-enc share <local-file-path>
        ipfs-file-enc share --key <secret-key> <local-file-path>

    \b
    GET AND DECRYPT
        ipfs-file-enc download --key <secret-key> <ipfs-link> <local-destination-path>
    """
    pass


# Add file commands
cli.add_command(share)
cli.add_command(download)

# Add key commands
cli.add_command(gen_key)


if __name__ == "__main__":
    cli()
