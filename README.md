# payjoin

Building blocks for receiving Payjoin (BIP 78 / BIP 77) payments in Python.

Everything here works on in-memory values, except for one async helper that
fetches OHTTP keys from a payjoin directory over HTTP.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `payjoin.urls` – `into_url(value)` parses a string (or accepts an already
  split URL) and requires it to have a host. URLs such as `file:///etc/hosts`
  or `blob:https://example.com` raise `IntoUrlError`
  ("URL scheme is not allowed").
- `payjoin.output_substitution` – the `OutputSubstitution` enum
  (`ENABLED`, `DISABLED`); `combine` gives `ENABLED` only when both flags are
  enabled.
- `payjoin.primitives` – `OutPoint`, `TxIn`, `TxOut` and `Transaction`
  (consensus `serialize`/`parse`, `compute_txid`), `FeeRate` in sat/kwu
  (`from_sat_per_kwu`, `from_sat_per_vb`, `BROADCAST_MIN`, `ZERO`),
  `AddressType`, and the script helpers `address_type_of_script`,
  `is_p2wpkh` and `redeem_script_from_script_sig`.
- `payjoin.optional_parameters` – `Params.from_query(query, supported_versions)`
  and `Params.from_query_pairs(pairs, supported_versions)` read the sender's
  `v`, `minfeerate`, `disableoutputsubstitution`,
  `maxadditionalfeecontribution`, `additionalfeeoutputindex` and
  `optimisticmerge` parameters. Unknown keys are ignored; an unsupported
  version raises `UnknownVersionError` and an unparsable fee rate raises
  `FeeRateParseError` (both are `ParamsError`).
- `payjoin.psbt` – `Psbt` (version 0) with `from_unsigned_tx`,
  `from_base64`/`to_base64`, `validate` (raises `InconsistentPsbt`) and
  `validate_input_utxos` (raises `PsbtInputsError`). `Psbt.input_pairs()`
  yields `PsbtInputPair` objects offering `previous_txout`, `validate_utxo`,
  `address_type` and `expected_input_weight` (in weight units).
- `payjoin.merge` – `merge_unsigned_tx(acc, psbt)` merges the inputs and
  outputs of two PSBTs with different unsigned transactions, keeping the
  witness UTXO of each input.
- `payjoin.receive_errors` – `ErrorCode`, `ImplementationError`,
  `PayloadError`, `ReplyableError`, `ReceiveError`,
  `OutputSubstitutionError`, `SelectionError`, `InputContributionError` and
  `JsonReply`, which builds the `{"errorCode": ..., "message": ...}` reply for
  an error via `JsonReply.from_error(...).to_json()`.
- `payjoin.receive` – `InputPair`, a receiver input validated on
  construction, and `parse_payload(base64_psbt, query, supported_versions)`,
  which returns `(Psbt, Params)` or raises `PayloadError`.
- `payjoin.ohttp` – `OhttpKeys` for secp256k1 OHTTP key configurations:
  `decode`/`encode`, `from_compressed`, and `from_str`/`str()` for the compact
  bech32 `OH1...` form. Parse failures raise `ParseOhttpKeysError`.
- `payjoin.io` – `fetch_ohttp_keys(ohttp_relay, payjoin_directory)`, an async
  function that requests `/.well-known/ohttp-gateway` from the directory
  through the relay as a proxy, and `parse_ohttp_keys_response(status_code, body)`.
  Failures raise `FetchOhttpKeysError`.

## Examples

```python
from payjoin.optional_parameters import Params
from payjoin.output_substitution import OutputSubstitution

params = Params.from_query(
    "v=1&minfeerate=1&disableoutputsubstitution=true", supported_versions=[1]
)
assert params.output_substitution is OutputSubstitution.DISABLED
```

```python
from payjoin.ohttp import OhttpKeys

keys = OhttpKeys.from_str("OH1QYPM5JXYNS754Y4R45QWE336QFX6ZR8DQGVQCULVZTV20TFVEYDMFQC")
assert OhttpKeys.from_str(str(keys)) == keys
```

```python
import asyncio
from payjoin.io import fetch_ohttp_keys

keys = asyncio.run(fetch_ohttp_keys("https://relay.example.com", "https://directory.example.com"))
```

## What this package does not do

- It has no sending side and no complete receiver workflow: it checks and
  parses requests and builds error replies, but does not construct payjoin
  proposals, select coins or sign anything.
- `OhttpKeys` only handles key configurations; nothing here encapsulates or
  decapsulates OHTTP requests.
- There is no payjoin directory or relay server, no persistence, and no
  command-line program.