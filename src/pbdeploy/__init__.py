"""
Deploy and manage Parseable on Kubernetes with Helm.
"""

__version__ = "0.1.0"
