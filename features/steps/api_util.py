import json
import typing

from behave import use_step_matcher, when

from strato_sdk.api_util import Endpoint, construct_endpoint, create_body

# Use regular expressions
use_step_matcher("re")


@when(r"I construct the endpoint (?P<template>[A-Z_]+) with (?P<params>\{.*\})")
def when_construct_endpoint(context: typing.Any, template: str, params: str):
    context.output = construct_endpoint(
        getattr(Endpoint, template), context.options, json.loads(params)
    )


@when(r"I create the body (?P<body>.+)")
def when_create_body(context: typing.Any, body: str):
    context.output = create_body(json.loads(body), context.options)
