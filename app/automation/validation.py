"""
Owner identifier validation.
"""

from web3 import Web3

from .exceptions import ValidationError


def validate_owner(owner: str) -> str:
    """
    Check an owner identifier is a well-formed account address.

    Args:
        owner: Hex account address, any casing.

    Returns:
        The checksummed address used as the registry key.
    """
    if not isinstance(owner, str) or not Web3.is_address(owner):
        raise ValidationError(f"Malformed owner address: {owner!r}")
    return Web3.to_checksum_address(owner)
