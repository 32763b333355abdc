"""
Theurgy - Command implementations for the dots CLI.

Each module holds one or more top-level CLI commands:
- keygen:  Create and store an sr25519 account secret
- query:   Read plain or map storage from a node
- submit:  Sign, submit and watch an extrinsic
- offline: Offline decoding and storage key derivation
"""
