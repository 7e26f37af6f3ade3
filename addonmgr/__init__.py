"""Addon lifecycle workflows, resource clients and manifest helpers for Kubernetes clusters."""

__version__ = "0.7.1"