"""Payjoin receiver building blocks: PSBT checks, sender parameters, error replies and OHTTP keys."""

__version__ = "0.1.0"