"""
Metadata - typed view of a runtime's pallets, types and signed extensions.

Decoding the raw metadata blob is delegated to an injected parser; this
package defines what such a parser must return.
"""
