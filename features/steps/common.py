import json
import typing

from behave import given, then, use_step_matcher

from strato_sdk.config import Config, Node
from strato_sdk.options import Options

# Use regular expressions
use_step_matcher("re")


@given(r"a node config with VM (?P<vm>\S+)")
def given_config(context: typing.Any, vm: str):
    config = Config(nodes=[Node("http://node")], vm=None if vm == "none" else vm)
    context.options = Options(config=config)


@given(r"option (?P<name>[a-z_]+) (?P<value>.+)")
def given_option(context: typing.Any, name: str, value: str):
    context.options = context.options.merge(**{name: json.loads(value)})


@then(r"the result should be string (?P<expected_value>\S*)")
def then_result_string(context: typing.Any, expected_value: str):
    assert context.output == expected_value, (
        "Expected " + expected_value + " but got " + str(context.output)
    )


@then(r"the result should be json (?P<expected_value>.+)")
def then_result_json(context: typing.Any, expected_value: str):
    expected_val = json.loads(expected_value)
    assert context.output == expected_val, (
        "Expected " + str(expected_val) + " but got " + str(context.output)
    )
