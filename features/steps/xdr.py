import typing

from behave import use_step_matcher, when

from soroban_ttl.xdr import Packer, Unpacker

# Use regular expressions
use_step_matcher("re")

PACKERS = {
    "bool": Packer.bool,
    "int32": Packer.int32,
    "uint32": Packer.uint32,
    "int64": Packer.int64,
    "uint64": Packer.uint64,
    "bytes": Packer.opaque,
    "string": Packer.string,
}

UNPACKERS = {
    "bool": Unpacker.bool,
    "int32": Unpacker.int32,
    "uint32": Unpacker.uint32,
    "int64": Unpacker.int64,
    "uint64": Unpacker.uint64,
    "bytes": Unpacker.opaque,
    "string": Unpacker.string,
}


@when(r"I pack as (?P<input_type>[a-zA-Z0-9]+)")
def when_pack(context: typing.Any, input_type: str):
    packer = Packer()
    try:
        PACKERS[input_type](packer, context.input)
        context.output = packer.output()
    except Exception as e:
        context.output = e


@when(r"I unpack as (?P<input_type>[a-zA-Z0-9]+)")
def when_unpack(context: typing.Any, input_type: str):
    unpacker = Unpacker(context.input)
    try:
        context.output = UNPACKERS[input_type](unpacker)
    except Exception as e:
        context.output = e


@when(r"I pack as sequence of (?P<input_type>[a-zA-Z0-9]+)")
def when_pack_sequence(context: typing.Any, input_type: str):
    packer = Packer()
    packer.array(context.input, PACKERS[input_type])
    context.output = packer.output()


@when(r"I unpack as sequence of (?P<input_type>[a-zA-Z0-9]+)")
def when_unpack_sequence(context: typing.Any, input_type: str):
    unpacker = Unpacker(context.input)
    try:
        context.output = unpacker.array(UNPACKERS[input_type])
    except Exception as e:
        context.output = e


@when(r"I unpack as fixed bytes with length (?P<length>[0-9]+)")
def when_unpack_fixed_bytes(context: typing.Any, length: str):
    try:
        unpacker = Unpacker(context.input)
        context.output = unpacker.fixed_opaque(int(length))
    except Exception as e:
        context.output = e
