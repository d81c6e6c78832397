import typing

from behave import use_step_matcher, when

from soroban_ttl import strkey

# Use regular expressions
use_step_matcher("re")

ENCODERS = {
    "account": strkey.encode_account_id,
    "seed": strkey.encode_seed,
    "contract": strkey.encode_contract,
}

DECODERS = {
    "account": strkey.decode_account_id,
    "seed": strkey.decode_seed,
    "contract": strkey.decode_contract,
}


@when(r"I encode as (?P<kind>account|seed|contract)")
def when_encode(context: typing.Any, kind: str):
    try:
        context.output = ENCODERS[kind](context.input)
    except Exception as e:
        context.output = e


@when(r"I decode as (?P<kind>account|seed|contract)")
def when_decode(context: typing.Any, kind: str):
    try:
        context.output = DECODERS[kind](context.input)
    except Exception as e:
        context.output = e
