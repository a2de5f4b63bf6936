"""Sandbox provider implementations."""

from execution.providers.docker import DockerProvider

__all__ = ["DockerProvider"]
