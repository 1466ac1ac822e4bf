import pytest

from payjoin.primitives import (
    AddressType,
    FeeRate,
    OutPoint,
    Transaction,
    TxIn,
    TxOut,
    address_type_of_script,
    is_p2wpkh,
    redeem_script_from_script_sig,
)

GENESIS_TX_HEX = (
    "01000000010000000000000000000000000000000000000000000000000000000000000000"
    "ffffffff4d04ffff001d0104455468652054696d65732030332f4a616e2f32303039204368"
    "616e63656c6c6f72206f6e206272696e6b206f66207365636f6e64206261696c6f757420"
    "666f722062616e6b73ffffffff0100f2052a01000000434104678afdb0fe5548271967f1a6"
    "7130b7105cd6a828e03909a67962e0ea1f61deb649f6bc3f4cef38c4f35504e51ec112de5c"
    "384df7ba0b8d578a4c702b6bf11d5fac00000000"
)
GENESIS_TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"

HASH20 = bytes(range(20))
HASH32 = bytes(range(32))
P2PKH = b"\x76\xa9\x14" + HASH20 + b"\x88\xac"
P2SH = b"\xa9\x14" + HASH20 + b"\x87"
P2WPKH = b"\x00\x14" + HASH20
P2WSH = b"\x00\x20" + HASH32
P2TR = b"\x51\x20" + HASH32


def _segwit_tx():
    outpoint = OutPoint(bytes([7]) * 32, 1)
    txin = TxIn(outpoint, witness=(b"\x30" * 71, b"\x02" * 33))
    return Transaction(inputs=[txin], outputs=[TxOut(1000, P2WPKH)])


def test_genesis_coinbase_round_trip_and_txid():
    raw = bytes.fromhex(GENESIS_TX_HEX)
    tx = Transaction.parse(raw)
    assert len(tx.inputs) == 1
    assert len(tx.outputs) == 1
    assert tx.inputs[0].previous_output.txid == bytes(32)
    assert tx.serialize() == raw
    assert tx.compute_txid()[::-1].hex() == GENESIS_TXID


def test_segwit_round_trip():
    tx = _segwit_tx()
    assert Transaction.parse(tx.serialize()) == tx


def test_txid_ignores_witness():
    tx = _segwit_tx()
    stripped = Transaction(
        inputs=[TxIn(txin.previous_output) for txin in tx.inputs], outputs=tx.outputs
    )
    assert tx.compute_txid() == stripped.compute_txid()
    assert len(tx.serialize()) > len(stripped.serialize())


def test_empty_transaction_round_trip():
    tx = Transaction()
    assert Transaction.parse(tx.serialize()) == tx


def test_truncated_data_is_rejected():
    raw = bytes.fromhex(GENESIS_TX_HEX)
    with pytest.raises(ValueError):
        Transaction.parse(raw[:-1])


def test_trailing_data_is_rejected():
    raw = bytes.fromhex(GENESIS_TX_HEX)
    with pytest.raises(ValueError):
        Transaction.parse(raw + b"\x00")


def test_bad_segwit_flag_is_rejected():
    with pytest.raises(ValueError):
        Transaction.parse(b"\x02\x00\x00\x00\x00\x02\x00\x00\x00\x00\x00\x00")


def test_outpoint_requires_32_byte_txid():
    with pytest.raises(ValueError):
        OutPoint(b"\x00" * 31, 0)


@pytest.mark.parametrize(
    "script, expected",
    [
        (P2PKH, AddressType.P2PKH),
        (P2SH, AddressType.P2SH),
        (P2WPKH, AddressType.P2WPKH),
        (P2WSH, AddressType.P2WSH),
        (P2TR, AddressType.P2TR),
    ],
)
def test_address_type_of_script(script, expected):
    assert address_type_of_script(script) is expected


def test_unknown_witness_version_has_no_address_type():
    assert address_type_of_script(b"\x52\x20" + HASH32) is None


@pytest.mark.parametrize("script", [b"", b"\x6a\x04abcd", b"\x00\x10" + bytes(16)])
def test_non_address_scripts_raise(script):
    with pytest.raises(ValueError):
        address_type_of_script(script)


def test_is_p2wpkh():
    assert is_p2wpkh(P2WPKH) is True
    assert is_p2wpkh(P2WSH) is False
    assert is_p2wpkh(P2PKH) is False


def test_redeem_script_from_push_only_script_sig():
    script_sig = bytes([len(P2WPKH)]) + P2WPKH
    assert redeem_script_from_script_sig(script_sig) == P2WPKH


def test_redeem_script_takes_last_push():
    script_sig = b"\x00" + b"\x4c" + bytes([len(P2WPKH)]) + P2WPKH
    assert redeem_script_from_script_sig(script_sig) == P2WPKH


@pytest.mark.parametrize("script_sig", [b"", b"\x51", b"\x02\xaa\xbb\xac", b"\x05\x01"])
def test_redeem_script_absent(script_sig):
    assert redeem_script_from_script_sig(script_sig) is None


def test_fee_rate_units():
    assert FeeRate.from_sat_per_vb(1) == FeeRate.BROADCAST_MIN
    assert FeeRate.from_sat_per_kwu(250) == FeeRate.BROADCAST_MIN
    assert FeeRate.ZERO < FeeRate.BROADCAST_MIN


def test_fee_rate_rejects_negative():
    with pytest.raises(ValueError):
        FeeRate.from_sat_per_kwu(-1)