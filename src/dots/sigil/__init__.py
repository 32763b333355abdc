"""
Sigil - signing and hashing capabilities.

Provides the sr25519 Account used to sign extrinsics, SS58 address
rendering, and the blake2b / xxHash primitives behind storage keys.
"""
