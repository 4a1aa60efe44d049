"""
Shared helpers for rollout-manager.
"""
