"""
Exception taxonomy shared by the share/download pipeline.

Everything raised on purpose by this package derives from IpfsFileEncError,
so the CLI can render any of them as a plain message plus a non-zero exit.
"""


class IpfsFileEncError(Exception):
    """Base exception for ipfs-file-enc errors"""

    pass


class ConfigError(IpfsFileEncError):
    """An environment override could not be parsed"""

    pass


# --- Keys ---


class KeyDecodeError(IpfsFileEncError):
    """Key text could not be multibase-decoded"""

    pass


class InvalidKeyLength(IpfsFileEncError):
    """Key material is not exactly 256 bits"""

    pass


class MissingKeyError(IpfsFileEncError):
    """No key was given and a random one is not allowed"""

    pass


# --- Nodes ---


class NodeCandidateError(IpfsFileEncError):
    """A single resolver candidate could not be used"""

    pass


class NoWritableNodeError(IpfsFileEncError):
    """Every writable node candidate was exhausted"""

    pass


class NodeUnreachableError(IpfsFileEncError):
    """The resolved node failed its liveness probe"""

    pass


# --- Sources, links, transfers ---


class SourceNotFoundError(IpfsFileEncError):
    """The file to share does not exist"""

    pass


class SourceIsDirectoryError(IpfsFileEncError):
    """The path to share is a directory"""

    pass


class SourceUnreadableError(IpfsFileEncError):
    """The file to share exists but cannot be opened"""

    pass


class InvalidLinkError(IpfsFileEncError):
    """Link text does not name any content"""

    pass


class PutFailedError(IpfsFileEncError):
    """Uploading ciphertext to the node failed"""

    pass


class GetFailedError(IpfsFileEncError):
    """Fetching ciphertext from the node failed"""

    pass


class DecryptError(IpfsFileEncError):
    """Ciphertext is malformed, truncated, tampered or under another key"""

    pass


class WriteFailedError(IpfsFileEncError):
    """Writing the decrypted plaintext to disk failed"""

    pass
