"""
Protocol layer for the Dobot Magician.

- wire: frame codec, protocol ids, the Message value
- types: enums and fixed-layout parameter records
"""
