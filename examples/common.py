# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Common configuration for the STRATO Python SDK examples.

Environment Variables:
    STRATO_CONFIG: Path to a node config file (YAML, TOML or JSON)
    STRATO_NODE_URL: Node URL used when no config file is given
    STRATO_TOKEN: OAuth bearer token of the user running the examples
"""

import os

from strato_sdk.config import Config, Node, load_config

CONFIG_PATH = os.getenv("STRATO_CONFIG")

# Used when no config file is given
NODE_URL = os.getenv("STRATO_NODE_URL", "http://localhost")

TOKEN = os.getenv("STRATO_TOKEN")


def get_config() -> Config:
    if CONFIG_PATH:
        return load_config(CONFIG_PATH)
    return Config(nodes=[Node(NODE_URL)], vm="SolidVM", timeout=60000)
