"""FBR Digital Invoicing compliance core."""

__version__ = '0.3.0'
