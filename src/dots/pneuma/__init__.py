"""
Pneuma - the live connection to a Substrate node.

- storage: storage key derivation
- tx:      extrinsic assembly and signing
- rpc:     JSON-RPC session over a persistent WebSocket
- context: query / submit surface built on the session
"""
