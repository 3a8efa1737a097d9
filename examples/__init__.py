"""
STRATO Python SDK Examples.

    - common.py: shared configuration read from the environment
    - simple_storage.py: upload a contract, call it, read its state and search it
    - transfer.py: fund two users and move value between them

Run them against a node with::

    STRATO_CONFIG=config.yaml STRATO_TOKEN=... python -m examples.simple_storage

When ``STRATO_TOKEN`` is not set, a token is obtained from the OpenID provider
configured for the first node.
"""
