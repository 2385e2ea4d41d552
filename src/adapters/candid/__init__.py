from adapters.candid.dip721 import (
    decode_mint_result,
    decode_supported_interfaces,
    encode_mint_args,
    encode_no_args,
)

__all__ = [
    "decode_mint_result",
    "decode_supported_interfaces",
    "encode_mint_args",
    "encode_no_args",
]
