# payjoin

Building blocks for receiving Payjoin payments: validating the sender's
Original PSBT, reading the sender's optional query parameters, producing
JSON error replies for the sender, merging the unsigned transactions of
several senders, and handling the OHTTP key configuration published by a
payjoin directory.

The library does no network IO except `payjoin.fetch.fetch_ohttp_keys`,
which fetches a directory's OHTTP keys through a relay.

## Installation

From a checkout:

```
pip install .
```

With the test tools, then run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `payjoin.transaction`: `Transaction`, `TxIn`, `TxOut`, `OutPoint` with
  consensus encoding (`serialize`, `Transaction.from_bytes`,
  `compute_txid`), `FeeRate`, `AddressType` and the script helpers
  `address_type`, `is_p2wpkh` and `redeem_script_from_script_sig`.
- `payjoin.psbt`: version 0 `Psbt` (base64 and binary round trips),
  `PsbtInput`, `PsbtOutput`, count checks (`Psbt.validate`) and per-input
  UTXO checks (`Psbt.validate_input_utxos`, `InputPairView`).
- `payjoin.merge`: `merge_unsigned_tx`.
- `payjoin.optional_parameters`: `Version`, `Params` and its errors.
- `payjoin.receive`: `InputPair` and `parse_payload`.
- `payjoin.receive_errors`: `ErrorCode`, `JsonReply` and the receiver's
  error types.
- `payjoin.multiparty_errors`: errors for assembling multiparty proposals.
- `payjoin.output_substitution`: `OutputSubstitution`.
- `payjoin.into_url`: `into_url`, `IntoUrlError`, `BadSchemeError`.
- `payjoin.ohttp`: `OhttpKeys`, `KeyConfigError`, `ParseOhttpKeysError`.
- `payjoin.fetch`: `fetch_ohttp_keys`, `parse_ohttp_keys_response`,
  `FetchOhttpKeysError`.

## Usage

### Parsing a sender's request

```python
from payjoin.optional_parameters import Version
from payjoin.receive import parse_payload

psbt, params = parse_payload(body_text, query_string, [Version.ONE, Version.TWO])
print(params.min_fee_rate, params.output_substitution)
```

A malformed PSBT, a PSBT whose maps do not match its transaction, or bad
parameters (an unknown `v`, an unparsable `minfeerate`) raise
`payjoin.receive_errors.PayloadError`. Unknown query keys are ignored.

Turn a receiver error into the JSON body the sender expects:

```python
from payjoin.receive_errors import JsonReply

reply = JsonReply.from_error(error)
payload = reply.to_json()   # {"errorCode": "...", "message": "..."}
```

An unknown version produces a `version-unsupported` reply with a
`supported` field listing the supported versions; an `ImplementationError`
produces `unavailable` with the message "Receiver error".

### Validating PSBT inputs

```python
from payjoin.psbt import Psbt

psbt = Psbt.from_base64(text).validate()
psbt.validate_input_utxos()
for pair in psbt.input_pairs():
    print(pair.address_type(), pair.expected_input_weight())
```

`validate_input_utxos` raises `PsbtInputsError` naming the index of the
first bad input. `expected_input_weight` supports P2PKH, nested P2WPKH in
P2SH, P2WPKH and P2TR key-path spends.

Receiver inputs are checked when an `InputPair` is built; it raises
`PsbtInputError` for missing or inconsistent UTXO data, an unknown address
type, or a P2SH input without a redeem script.

### Checking URLs

```python
from payjoin.into_url import into_url

url = into_url("https://localhost")   # raises BadSchemeError for file: or blob:
```

### OHTTP keys

```python
from payjoin.ohttp import OhttpKeys

keys = OhttpKeys.generate(1)
text = str(keys)                      # compact "OH1..." form
assert OhttpKeys.from_str(text) == keys
config = keys.encode()                # binary key configuration
assert OhttpKeys.decode(config) == keys
```

Fetching keys from a directory, with the relay used as HTTP proxy:

```python
from payjoin.fetch import fetch_ohttp_keys

keys = await fetch_ohttp_keys("http://relay.example.com", "https://directory.example.com")
```

The request goes to `/.well-known/ohttp-gateway` on the directory. A
non-success status or an undecodable body raises `FetchOhttpKeysError`.

### Merging multiparty PSBTs

`payjoin.merge.merge_unsigned_tx(acc, psbt)` returns a new PSBT holding the
inputs and outputs of both. Of adjacent inputs spending the same outpoint
only the first is kept; all outputs are kept. It fits `functools.reduce`
over a list of PSBTs.

## What this package does not do

It provides the checks, parameters and errors a receiver needs, not a whole
receiver: there is no step-by-step proposal workflow (input contribution,
output substitution, finalisation), no sending side, no OHTTP request
encapsulation or HPKE encryption, no payjoin directory server, no session
storage and no command-line program.