import pytest

from payjoin.optional_parameters import FeeRateParseError, UnknownVersionError, Version
from payjoin.psbt import MissingUtxoInformation
from payjoin.receive_errors import (
    ErrorCode,
    ImplementationError,
    InputContributionError,
    JsonReply,
    OutputSubstitutionError,
    PayloadError,
    ReceiveError,
    ReplyableError,
    SelectionError,
)
from payjoin.transaction import FeeRate


def test_json_reply_to_json_has_code_and_message():
    reply = JsonReply(ErrorCode.UNAVAILABLE, "Receiver error")
    assert reply.to_json() == {
        "errorCode": str(ErrorCode.UNAVAILABLE),
        "message": "Receiver error",
    }


def test_json_reply_with_extra_returns_new_reply():
    reply = JsonReply(ErrorCode.ORIGINAL_PSBT_REJECTED, "bad")
    extended = reply.with_extra("supported", "[1]")
    assert extended.to_json()["supported"] == "[1]"
    assert "supported" not in reply.to_json()
    assert extended.error_code is reply.error_code


def test_json_reply_message_is_stringified():
    reply = JsonReply(ErrorCode.ORIGINAL_PSBT_REJECTED, PayloadError(PayloadError.MISSING_PAYMENT))
    assert reply.message == "Missing payment."


def test_implementation_error_replies_unavailable():
    error = ReplyableError(ImplementationError("db down"))
    assert JsonReply.from_error(error) == JsonReply(ErrorCode.UNAVAILABLE, "Receiver error")


def test_implementation_error_display():
    error = ReplyableError(ImplementationError("db down"))
    assert str(error) == "Internal Server Error: db down"
    assert isinstance(error.__cause__, ImplementationError)


def test_receive_error_display():
    error = ReceiveError(ReplyableError(PayloadError(PayloadError.MISSING_PAYMENT)))
    assert str(error) == "replyable error: Missing payment."
    assert isinstance(error.error, ReplyableError)


def test_fee_too_high_replies_not_enough_money():
    error = PayloadError(
        PayloadError.FEE_TOO_HIGH, FeeRate.from_sat_per_kwu(1000), FeeRate.from_sat_per_kwu(500)
    )
    reply = JsonReply.from_error(error)
    assert reply.error_code is ErrorCode.NOT_ENOUGH_MONEY
    assert reply.message == (
        "Effective receiver feerate exceeds maximum allowed feerate: "
        f"{FeeRate.from_sat_per_kwu(1000)} > {FeeRate.from_sat_per_kwu(500)}"
    )


def test_below_fee_rate_is_rejected():
    low, minimum = FeeRate.from_sat_per_kwu(100), FeeRate.from_sat_per_kwu(250)
    error = PayloadError(PayloadError.PSBT_BELOW_FEE_RATE, low, minimum)
    assert str(error) == f"Original PSBT fee rate too low: {low} < {minimum}."
    assert JsonReply.from_error(error).error_code is ErrorCode.ORIGINAL_PSBT_REJECTED


def test_unknown_version_replies_version_unsupported():
    error = PayloadError(
        PayloadError.SENDER_PARAMS, UnknownVersionError([Version.ONE, Version.TWO])
    )
    reply = JsonReply.from_error(ReplyableError(error))
    assert reply.error_code is ErrorCode.VERSION_UNSUPPORTED
    assert reply.message == "This version of payjoin is not supported."
    assert reply.to_json()["supported"] == "[1,2]"


def test_fee_rate_param_error_is_rejected():
    error = PayloadError(PayloadError.SENDER_PARAMS, FeeRateParseError())
    reply = JsonReply.from_error(error)
    assert reply.error_code is ErrorCode.ORIGINAL_PSBT_REJECTED
    assert reply.message == "could not parse feerate"


def test_prev_txout_wraps_cause():
    cause = MissingUtxoInformation()
    error = PayloadError(PayloadError.PREV_TXOUT, cause)
    assert str(error) == "PrevTxOut Error: missing UTXO information"
    assert error.__cause__ is cause
    assert error.error is cause


def test_input_owned_and_seen_share_message():
    owned = PayloadError(PayloadError.INPUT_OWNED, b"\x00\x14")
    seen = PayloadError(PayloadError.INPUT_SEEN, "outpoint")
    assert str(owned) == str(seen) == "The receiver rejected the original PSBT."
    assert owned.error is None


def test_not_broadcastable_message():
    error = PayloadError(PayloadError.ORIGINAL_PSBT_NOT_BROADCASTABLE)
    assert str(error) == "Can't broadcast. PSBT rejected by mempool."


def test_payload_error_rejects_unknown_kind():
    with pytest.raises(ValueError):
        PayloadError("nonsense")


def test_payload_error_rejects_wrong_detail_count():
    with pytest.raises(TypeError):
        PayloadError(PayloadError.FEE_TOO_HIGH, FeeRate.from_sat_per_kwu(1))


def test_from_error_rejects_other_types():
    with pytest.raises(TypeError):
        JsonReply.from_error(RuntimeError("boom"))


@pytest.mark.parametrize(
    "kind, message",
    [
        (
            OutputSubstitutionError.DECREASED_VALUE_WHEN_DISABLED,
            "Decreasing the receiver output value is not allowed when output "
            "substitution is disabled",
        ),
        (
            OutputSubstitutionError.SCRIPT_PUBKEY_CHANGED_WHEN_DISABLED,
            "Changing the receiver output script pubkey is not allowed when output "
            "substitution is disabled",
        ),
        (
            OutputSubstitutionError.NOT_ENOUGH_OUTPUTS,
            "Current output substitution implementation doesn't support reducing the "
            "number of outputs",
        ),
        (
            OutputSubstitutionError.INVALID_DRAIN_SCRIPT,
            "The provided drain script could not be identified in the provided "
            "replacement outputs",
        ),
    ],
)
def test_output_substitution_messages(kind, message):
    assert str(OutputSubstitutionError(kind)) == message


@pytest.mark.parametrize(
    "kind, message",
    [
        (SelectionError.EMPTY, "No candidates available for selection"),
        (
            SelectionError.UNSUPPORTED_OUTPUT_LENGTH,
            "Current privacy selection implementation only supports 2-output transactions",
        ),
        (SelectionError.NOT_FOUND, "No selection candidates improve privacy"),
    ],
)
def test_selection_messages(kind, message):
    assert str(SelectionError(kind)) == message


def test_input_contribution_message():
    error = InputContributionError(InputContributionError.VALUE_TOO_LOW)
    assert str(error) == "Total input value is not enough to cover additional output value"


def test_unknown_selection_kind_rejected():
    with pytest.raises(ValueError):
        SelectionError("other")