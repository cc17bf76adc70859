"""ipfs-file-enc - Encrypt files and share them over IPFS."""

__version__ = "0.1.0"
__author__ = "ipfs-file-enc developers"
__description__ = "Encrypt a file, publish the ciphertext to IPFS, fetch and decrypt it"

# Make key modules available at package level
from . import lib
from . import cli

__all__ = ["cli", "lib"]
