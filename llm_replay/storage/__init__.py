"""
Storage layer: request ledger and model/provider registry.
"""
