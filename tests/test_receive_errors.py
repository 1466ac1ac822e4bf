import pytest

from payjoin.optional_parameters import FeeRateParseError, UnknownVersionError
from payjoin.primitives import FeeRate, OutPoint
from payjoin.psbt import PrevTxOutError
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


def test_json_reply_to_json_holds_code_and_message():
    reply = JsonReply(ErrorCode.UNAVAILABLE, "Receiver error")
    assert reply.to_json() == {"errorCode": "unavailable", "message": "Receiver error"}


def test_json_reply_message_from_exception():
    reply = JsonReply(ErrorCode.ORIGINAL_PSBT_REJECTED, ValueError("boom"))
    assert reply.message == "boom"


def test_with_extra_adds_field_and_leaves_original():
    reply = JsonReply(ErrorCode.UNAVAILABLE, "m")
    extended = reply.with_extra("supported", "[1]")
    assert extended.to_json()["supported"] == "[1]"
    assert "supported" not in reply.to_json()
    assert extended.error_code is reply.error_code


def test_payload_missing_payment_reply():
    error = PayloadError("missing_payment")
    assert str(error) == "Missing payment."
    reply = JsonReply.from_error(error)
    assert reply == JsonReply(ErrorCode.ORIGINAL_PSBT_REJECTED, "Missing payment.")


def test_fee_too_high_is_not_enough_money():
    error = PayloadError("fee_too_high", (FeeRate(500), FeeRate(250)))
    assert str(error) == (
        "Effective receiver feerate exceeds maximum allowed feerate: 500 > 250"
    )
    reply = JsonReply.from_error(error)
    assert reply.error_code is ErrorCode.NOT_ENOUGH_MONEY
    assert reply.message == str(error)


def test_psbt_below_fee_rate_message():
    error = PayloadError("psbt_below_fee_rate", (FeeRate(100), FeeRate(250)))
    assert str(error) == "Original PSBT fee rate too low: 100 < 250."
    assert JsonReply.from_error(error).error_code is ErrorCode.ORIGINAL_PSBT_REJECTED


def test_unknown_version_reply_lists_supported_versions():
    error = PayloadError("sender_params", UnknownVersionError([1, 2]))
    reply = JsonReply.from_error(error)
    assert reply.error_code is ErrorCode.VERSION_UNSUPPORTED
    assert reply.message == "This version of payjoin is not supported."
    assert reply.to_json()["supported"] == "[1,2]"


def test_fee_rate_params_reply():
    error = PayloadError("sender_params", FeeRateParseError())
    reply = JsonReply.from_error(error)
    assert reply.error_code is ErrorCode.ORIGINAL_PSBT_REJECTED
    assert reply.message == "could not parse feerate"
    assert isinstance(error.__cause__, FeeRateParseError)


def test_prev_txout_message_and_cause():
    inner = PrevTxOutError()
    error = PayloadError("prev_txout", inner)
    assert str(error) == "PrevTxOut Error: missing UTXO information"
    assert error.__cause__ is inner


@pytest.mark.parametrize("kind, detail", [
    ("input_owned", b"\x00\x14" + bytes(20)),
    ("input_seen", OutPoint(bytes(32), 0)),
])
def test_rejections_hide_details(kind, detail):
    error = PayloadError(kind, detail)
    assert str(error) == "The receiver rejected the original PSBT."
    assert error.detail == detail


def test_unknown_payload_kind_rejected():
    with pytest.raises(ValueError):
        PayloadError("no_such_kind")


def test_implementation_error_reply():
    replyable = ReplyableError(ImplementationError("db down"))
    assert str(replyable) == "Internal Server Error: db down"
    assert isinstance(replyable.__cause__, ImplementationError)
    assert JsonReply.from_error(replyable) == JsonReply(ErrorCode.UNAVAILABLE, "Receiver error")


def test_replyable_payload_delegates():
    payload = PayloadError("missing_payment")
    replyable = ReplyableError(payload)
    assert str(replyable) == "Missing payment."
    assert JsonReply.from_error(replyable) == JsonReply.from_error(payload)


def test_replyable_rejects_other_errors():
    with pytest.raises(TypeError):
        ReplyableError(ValueError("x"))


def test_receive_error_message():
    error = ReceiveError(ReplyableError(PayloadError("missing_payment")))
    assert str(error) == "replyable error: Missing payment."
    assert error.error.error.kind == "missing_payment"


def test_output_substitution_error_message():
    error = OutputSubstitutionError("not_enough_outputs")
    assert str(error) == (
        "Current output substitution implementation doesn't support "
        "reducing the number of outputs"
    )
    assert error.kind == "not_enough_outputs"


def test_selection_error_messages():
    assert str(SelectionError("empty")) == "No candidates available for selection"
    assert str(SelectionError("not_found")) == "No selection candidates improve privacy"
    with pytest.raises(ValueError):
        SelectionError("bogus")


def test_input_contribution_error_message():
    assert str(InputContributionError("value_too_low")) == (
        "Total input value is not enough to cover additional output value"
    )