"""Bitvia explorer API: a Bitcoin explorer backend over a full node and an Electrum indexer."""

__version__ = "1.0.0"
