"""
alertrouter - declarative alert routing.

Routes alerts through an Alertmanager-style route tree, batches them into
groups, applies inhibition rules and silences, and emits notification jobs.
"""

__version__ = "0.1.0"
