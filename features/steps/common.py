import typing

from behave import given, then, use_step_matcher

# Use regular expressions
use_step_matcher("re")

INTEGER_TYPES = ("int32", "uint32", "int64", "uint64")


@given(
    r"(?P<input_type>bool|int32|uint32|int64|uint64|bytes|string) (?P<input_value>\S+)"
)
def given_input(context: typing.Any, input_type: str, input_value: str):
    context.input = parse_value(input_type, input_value)


@given(r"sequence of (?P<input_type>[a-zA-Z0-9]+) \[(?P<input_value>.*)]")
def given_sequence_input(context: typing.Any, input_type: str, input_value: str):
    context.input = parse_sequence(input_type, input_value)


@then(
    r"the result should be (?P<expected_type>bool|int32|uint32|int64|uint64|bytes|string) (?P<expected_value>\S+)"
)
def then_result(context: typing.Any, expected_type: str, expected_value: str):
    expected_val = parse_value(expected_type, expected_value)
    assert context.output == expected_val, (
        "Expected " + str(expected_val) + " but got " + str(context.output)
    )


@then(
    r"the result should be sequence of (?P<expected_type>[a-zA-Z0-9]+) \[(?P<expected_value>\S*)]"
)
def then_result_sequence(context: typing.Any, expected_type: str, expected_value: str):
    expected_val = parse_sequence(expected_type, expected_value)
    assert context.output == expected_val, (
        "Expected " + str(expected_val) + " but got " + str(context.output)
    )


@then(r"the (?P<action>[a-z]+) should fail")
def then_fail(context: typing.Any, action: str):
    assert isinstance(context.output, Exception), (
        "Expected " + action + " to fail but got " + str(context.output)
    )


def parse_value(input_type: str, input_value: str) -> typing.Any:
    if input_type == "bool":
        return parse_bool(input_value)
    elif input_type in INTEGER_TYPES:
        return int(input_value)
    elif input_type == "bytes":
        return parse_hex(input_value)
    elif input_type == "string":
        return parse_string(input_value)
    raise Exception("Unrecognized input type")


def parse_sequence(input_type: str, input_value: str) -> typing.List[typing.Any]:
    # Skip early if there are no values
    if len(input_value) == 0:
        return []
    return [parse_value(input_type, val) for val in input_value.split(",")]


def parse_hex(input_value: str) -> bytes:
    if input_value.startswith("0x"):
        input_value = input_value[2:]
    return bytes.fromhex(input_value)


def parse_bool(input_value: str) -> bool:
    return input_value == "true"


def parse_string(input_value: str) -> str:
    if input_value.startswith('"'):
        input_value = input_value[1:]
    if input_value.endswith('"'):
        input_value = input_value[:-1]
    return input_value
