"""SSZ helpers over remerkleable views.

Merkleization is remerkleable's job; this module only gives the rest of the
package a narrow surface onto it.
"""

from remerkleable.core import View


def hash_tree_root(obj: View) -> bytes:
    """Return the 32-byte Merkle root of a view."""
    return bytes(obj.hash_tree_root())


__all__ = ["hash_tree_root"]
