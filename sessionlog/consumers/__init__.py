# ==============================================================================
# Queue Consumers
# ==============================================================================
"""
Long-running consumers that feed queue batches into the ingress dispatcher.
"""
