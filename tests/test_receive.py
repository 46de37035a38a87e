import pytest

from payjoin.optional_parameters import UnknownVersionError, Version
from payjoin.output_substitution import OutputSubstitution
from payjoin.psbt import Psbt, PsbtInput, PsbtInputError
from payjoin.receive import InputPair, parse_payload
from payjoin.receive_errors import ErrorCode, JsonReply, PayloadError
from payjoin.transaction import FeeRate, OutPoint, Transaction, TxIn, TxOut

P2WPKH = b"\x00\x14" + b"\x11" * 20
P2SH = b"\xa9\x14" + b"\x22" * 20 + b"\x87"
NESTED_REDEEM = b"\x00\x14" + b"\x33" * 20


def _prev_tx(script: bytes) -> Transaction:
    return Transaction(
        inputs=[TxIn(OutPoint(b"\x00" * 32, 0))],
        outputs=[TxOut(7000, b"\x00\x14" + b"\x44" * 20), TxOut(5000, script)],
    )


def _original_psbt() -> Psbt:
    tx = Transaction(
        inputs=[TxIn(OutPoint(b"\x55" * 32, 1))],
        outputs=[TxOut(4000, P2WPKH)],
    )
    psbt = Psbt.from_unsigned_tx(tx)
    psbt.inputs[0].witness_utxo = TxOut(5000, P2WPKH)
    return psbt


def test_input_pair_with_witness_utxo():
    txout = TxOut(5000, P2WPKH)
    pair = InputPair(TxIn(OutPoint(b"\x01" * 32, 0)), PsbtInput(witness_utxo=txout))
    assert pair.previous_txout() == txout


def test_input_pair_with_matching_non_witness_utxo():
    prev = _prev_tx(P2WPKH)
    pair = InputPair(TxIn(OutPoint(prev.compute_txid(), 1)), PsbtInput(non_witness_utxo=prev))
    assert pair.previous_txout() == prev.outputs[1]


def test_input_pair_missing_utxo():
    with pytest.raises(PsbtInputError) as info:
        InputPair(TxIn(OutPoint(b"\x01" * 32, 0)), PsbtInput())
    assert info.value.kind == PsbtInputError.PREV_TXOUT


def test_input_pair_unequal_txid():
    prev = _prev_tx(P2WPKH)
    with pytest.raises(PsbtInputError) as info:
        InputPair(TxIn(OutPoint(b"\x09" * 32, 1)), PsbtInput(non_witness_utxo=prev))
    assert info.value.kind == PsbtInputError.UNEQUAL_TXID


def test_input_pair_p2sh_requires_redeem_script():
    with pytest.raises(PsbtInputError) as info:
        InputPair(TxIn(OutPoint(b"\x01" * 32, 0)), PsbtInput(witness_utxo=TxOut(5000, P2SH)))
    assert info.value.kind == PsbtInputError.NO_REDEEM_SCRIPT
    assert str(info.value) == "provided p2sh PSBT input is missing a redeem_script"


def test_input_pair_p2sh_with_redeem_script():
    txout = TxOut(5000, P2SH)
    pair = InputPair(
        TxIn(OutPoint(b"\x01" * 32, 0)),
        PsbtInput(witness_utxo=txout, redeem_script=NESTED_REDEEM),
    )
    assert pair.previous_txout() == txout


def test_input_pair_unknown_script():
    with pytest.raises(PsbtInputError) as info:
        InputPair(TxIn(OutPoint(b"\x01" * 32, 0)), PsbtInput(witness_utxo=TxOut(5000, b"\x6a")))
    assert info.value.kind == PsbtInputError.ADDRESS_TYPE


def test_parse_payload_round_trip():
    original = _original_psbt()
    psbt, params = parse_payload(
        original.to_base64(), "v=1&minfeerate=2&disableoutputsubstitution=true", [Version.ONE]
    )
    assert psbt.to_base64() == original.to_base64()
    assert params.v is Version.ONE
    assert params.min_fee_rate == FeeRate.from_sat_per_vb(2)
    assert params.output_substitution is OutputSubstitution.DISABLED


def test_parse_payload_defaults_with_empty_query():
    _, params = parse_payload(_original_psbt().to_base64(), "", [Version.ONE])
    assert params.v is Version.ONE
    assert params.additional_fee_contribution is None
    assert params.output_substitution is OutputSubstitution.ENABLED


def test_parse_payload_bad_base64():
    with pytest.raises(PayloadError) as info:
        parse_payload("not base64!!", "", [Version.ONE])
    assert info.value.kind == PayloadError.PARSE_PSBT
    assert JsonReply.from_error(info.value).error_code is ErrorCode.ORIGINAL_PSBT_REJECTED


def test_parse_payload_unknown_version():
    with pytest.raises(PayloadError) as info:
        parse_payload(_original_psbt().to_base64(), "v=888", [Version.ONE])
    assert info.value.kind == PayloadError.SENDER_PARAMS
    assert isinstance(info.value.error, UnknownVersionError)
    reply = JsonReply.from_error(info.value)
    assert reply.error_code is ErrorCode.VERSION_UNSUPPORTED
    assert reply.to_json()["supported"] == "[1]"


def test_parse_payload_bad_fee_rate():
    with pytest.raises(PayloadError) as info:
        parse_payload(_original_psbt().to_base64(), "minfeerate=abc", [Version.ONE])
    assert info.value.kind == PayloadError.SENDER_PARAMS
    assert str(info.value) == "could not parse feerate"