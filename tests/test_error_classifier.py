from __future__ import annotations

import pytest

from core.domain.errors import (
    CallRejected,
    ProtocolError,
    RejectCode,
    UnsupportedOperation,
    UnsupportedService,
)
from core.services.error_classifier import classify_rejection


def test_destination_invalid_means_unsupported() -> None:
    rejection = CallRejected(3, "Canister has no query method 'supportedInterfacesDip721'")
    error = classify_rejection(rejection, context="canister x does not appear to be a DIP-721 NFT canister")

    assert isinstance(error, UnsupportedService)
    assert error.rejection is rejection
    assert str(error).startswith("canister x does not appear to be a DIP-721 NFT canister: ")
    assert "supportedInterfacesDip721" in str(error)
    assert error.hint


def test_unsupported_type_is_chosen_by_caller() -> None:
    error = classify_rejection(CallRejected(3, "no update method"), context="ctx", unsupported=UnsupportedOperation)
    assert isinstance(error, UnsupportedOperation)
    assert "minting" in error.hint


@pytest.mark.parametrize("code", [1, 2, 4, 5, 42])
def test_other_codes_are_protocol_errors(code: int) -> None:
    rejection = CallRejected(code, "canister trapped: out of cycles")
    error = classify_rejection(rejection, context="ctx")

    assert type(error) is ProtocolError
    assert error.rejection.code == code
    assert "canister trapped: out of cycles" in str(error)
    assert "ctx" not in str(error)


def test_code_three_is_unsupported_whatever_the_message() -> None:
    # A code-3 rejection unrelated to the method (here, a stopped canister) is
    # still reported as unsupported: only the code is looked at.
    rejection = CallRejected(RejectCode.DESTINATION_INVALID, "Canister ryjl3-tyaaa-aaaaa-aaaba-cai is stopped")
    error = classify_rejection(rejection, context="ctx")

    assert isinstance(error, UnsupportedService)
    assert "is stopped" in str(error)


def test_reject_code_lookup() -> None:
    assert CallRejected(4, "x").reject_code is RejectCode.CANISTER_REJECT
    assert CallRejected(99, "x").reject_code is None
