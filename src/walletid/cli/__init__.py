"""Command line interface for walletid."""
