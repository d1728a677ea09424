"""
S9B SDK Command-Line Tools
==========================

Entry points for the S9B toolchain:

- **s9basm**: assemble source into a program image
- **s9brun**: run source or an image and print its output
- **s9bdisasm**: render an image back into source syntax

Each tool is a click command exposed as ``main`` in its module.
"""

__all__ = ["s9basm", "s9brun", "s9bdisasm"]
