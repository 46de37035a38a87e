import pytest

from payjoin.multiparty_errors import (
    CombinePsbtsFailed,
    ExtractTxFailed,
    IdenticalContexts,
    IdenticalProposals,
    IdenticalPsbts,
    InputMissingWitnessOrScriptSig,
    MultipartyError,
    NotEnoughProposals,
    OptimisticMergeNotSupported,
    ProposalVersionNotSupported,
)
from payjoin.optional_parameters import Version
from payjoin.psbt import Psbt
from payjoin.transaction import OutPoint, Transaction, TxIn, TxOut


def _psbt(seed: int) -> Psbt:
    tx = Transaction(
        inputs=[TxIn(OutPoint(bytes([seed]) * 32, 0))],
        outputs=[TxOut(1000, b"\x00\x14" + bytes([seed]) * 20)],
    )
    return Psbt.from_unsigned_tx(tx)


def test_fixed_messages():
    assert str(NotEnoughProposals()) == "Not enough proposals"
    assert str(OptimisticMergeNotSupported()) == "Optimistic merge not supported"
    assert (
        str(InputMissingWitnessOrScriptSig())
        == "Input in Finalized Proposal is missing witness or script_sig"
    )


@pytest.mark.parametrize(
    "make_error, message",
    [
        (NotEnoughProposals, "Not enough proposals"),
        (OptimisticMergeNotSupported, "Optimistic merge not supported"),
        (
            InputMissingWitnessOrScriptSig,
            "Input in Finalized Proposal is missing witness or script_sig",
        ),
    ],
)
def test_all_are_multiparty_errors(make_error, message):
    err = make_error()
    assert isinstance(err, MultipartyError)
    assert str(err) == message
    assert err.args != () or str(err) == message


def test_identical_psbts_message_contains_both_psbts():
    left, right = _psbt(1), _psbt(2)
    err = IdenticalProposals(IdenticalPsbts(left, right))
    text = str(err)
    assert text.startswith("More than one identical participant: Two sender psbts are identical\n")
    assert f" left psbt: {left.to_base64()}\n" in text
    assert text.endswith(f" right psbt: {right.to_base64()}")


def test_identical_contexts_message():
    err = IdenticalProposals(IdenticalContexts("AAAA", "BBBB"))
    assert str(err) == (
        "More than one identical participant: Two sender contexts are identical\n"
        " left id: AAAA\n right id: BBBB"
    )


def test_identical_messages_compare_equal_for_equal_inputs():
    first = IdenticalProposals(IdenticalContexts("id", "id"))
    second = IdenticalProposals(IdenticalContexts("id", "id"))
    assert str(first) == str(second)
    assert first.error == second.error


def test_version_not_supported():
    err = ProposalVersionNotSupported(Version.ONE)
    assert err.version is Version.ONE
    assert str(err) == "Proposal version not supported: 1"


def test_wrapped_errors_keep_cause():
    inner = ValueError("fee too high")
    extract = ExtractTxFailed(inner)
    assert extract.__cause__ is inner
    assert str(extract).startswith("Bitcoin extract tx error: ")
    assert "fee too high" in str(extract)

    combine_inner = ValueError("unsigned tx mismatch")
    combine = CombinePsbtsFailed(combine_inner)
    assert combine.__cause__ is combine_inner
    assert str(combine).startswith("Failed to combine psbts: ")
    assert "unsigned tx mismatch" in str(combine)