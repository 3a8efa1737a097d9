import typing

from behave import then, use_step_matcher, when

from strato_sdk.http_client import RestError
from strato_sdk.metadata import construct_metadata

# Use regular expressions
use_step_matcher("re")


@when(r"I construct the metadata for (?P<contract_name>\S+)")
def when_construct_metadata(context: typing.Any, contract_name: str):
    try:
        context.output = construct_metadata(context.options, contract_name).to_dict()
    except RestError as e:
        context.output = e


@then(r"construction should fail with status (?P<status>\d+)")
def then_construction_fails(context: typing.Any, status: str):
    assert isinstance(context.output, RestError)
    assert context.output.status_code == int(status)
