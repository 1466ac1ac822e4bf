import pytest

from payjoin.optional_parameters import FeeRateParseError, UnknownVersionError
from payjoin.output_substitution import OutputSubstitution
from payjoin.primitives import FeeRate, OutPoint, Transaction, TxIn, TxOut
from payjoin.psbt import Psbt, PsbtInput, PsbtInputValidationError
from payjoin.receive import InputPair, parse_payload
from payjoin.receive_errors import PayloadError

P2WPKH_SCRIPT = b"\x00\x14" + bytes(range(20))
P2SH_SCRIPT = b"\xa9\x14" + bytes(range(20)) + b"\x87"


def _txin(txid=bytes(32), vout=0):
    return TxIn(previous_output=OutPoint(txid, vout))


def _sample_psbt():
    tx = Transaction(
        inputs=[_txin(b"\x22" * 32, 1)],
        outputs=[TxOut(5000, P2WPKH_SCRIPT)],
    )
    psbt = Psbt.from_unsigned_tx(tx)
    psbt.inputs[0].witness_utxo = TxOut(6000, P2WPKH_SCRIPT)
    return psbt


def test_input_pair_with_witness_utxo():
    txout = TxOut(1000, P2WPKH_SCRIPT)
    pair = InputPair(_txin(), PsbtInput(witness_utxo=txout))
    assert pair.previous_txout() == txout


def test_input_pair_with_matching_non_witness_utxo():
    txout = TxOut(2000, P2WPKH_SCRIPT)
    prev_tx = Transaction(inputs=[_txin(b"\x11" * 32)], outputs=[txout])
    pair = InputPair(_txin(prev_tx.compute_txid(), 0), PsbtInput(non_witness_utxo=prev_tx))
    assert pair.previous_txout() == txout


def test_input_pair_missing_utxo():
    with pytest.raises(PsbtInputValidationError) as info:
        InputPair(_txin(), PsbtInput())
    assert info.value.kind == "prev_txout"


def test_input_pair_unequal_txid():
    prev_tx = Transaction(inputs=[_txin(b"\x11" * 32)], outputs=[TxOut(1, P2WPKH_SCRIPT)])
    with pytest.raises(PsbtInputValidationError) as info:
        InputPair(_txin(b"\x33" * 32, 0), PsbtInput(non_witness_utxo=prev_tx))
    assert info.value.kind == "unequal_txid"


def test_input_pair_p2sh_requires_redeem_script():
    with pytest.raises(PsbtInputValidationError) as info:
        InputPair(_txin(), PsbtInput(witness_utxo=TxOut(1000, P2SH_SCRIPT)))
    assert info.value.kind == "no_redeem_script"


def test_input_pair_p2sh_with_redeem_script():
    txout = TxOut(1000, P2SH_SCRIPT)
    pair = InputPair(_txin(), PsbtInput(witness_utxo=txout, redeem_script=P2WPKH_SCRIPT))
    assert pair.previous_txout() == txout


def test_input_pair_unknown_script():
    with pytest.raises(PsbtInputValidationError) as info:
        InputPair(_txin(), PsbtInput(witness_utxo=TxOut(1000, b"\x6a")))
    assert info.value.kind == "address_type"


def test_parse_payload_round_trip():
    psbt = _sample_psbt()
    parsed, params = parse_payload(psbt.to_base64(), "v=1", (1,))
    assert parsed == psbt
    assert params.v == 1
    assert params.output_substitution is OutputSubstitution.ENABLED
    assert params.min_fee_rate == FeeRate.BROADCAST_MIN


def test_parse_payload_reads_params():
    query = (
        "maxadditionalfeecontribution=182&additionalfeeoutputindex=0"
        "&minfeerate=1&disableoutputsubstitution=true"
    )
    _, params = parse_payload(_sample_psbt().to_base64(), query, (1,))
    assert params.additional_fee_contribution == (182, 0)
    assert params.output_substitution is OutputSubstitution.DISABLED
    assert params.min_fee_rate == FeeRate.BROADCAST_MIN


def test_parse_payload_bad_psbt():
    with pytest.raises(PayloadError) as info:
        parse_payload("not a psbt!", "", (1,))
    assert info.value.kind == "parse_psbt"
    assert isinstance(info.value.__cause__, ValueError)


def test_parse_payload_unknown_version():
    with pytest.raises(PayloadError) as info:
        parse_payload(_sample_psbt().to_base64(), "v=3", (1,))
    assert info.value.kind == "sender_params"
    assert isinstance(info.value.detail, UnknownVersionError)
    assert info.value.detail.supported_versions == (1,)


def test_parse_payload_bad_fee_rate():
    with pytest.raises(PayloadError) as info:
        parse_payload(_sample_psbt().to_base64(), "minfeerate=abc", (1,))
    assert isinstance(info.value.detail, FeeRateParseError)
    assert str(info.value) == "could not parse feerate"