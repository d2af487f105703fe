"""
Core modules for Machine Log.

This package contains the production ledger, the machine time
reconciler, and the coordinator that drives periodic flushing.
"""
