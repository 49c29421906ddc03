"""Simulated single-instrument CFD venue (price generator + margin ledger)."""
