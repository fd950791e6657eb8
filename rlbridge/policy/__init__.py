"""Policy server stand-ins."""

from rlbridge.policy.fake_server import FakePolicyServer

__all__ = ["FakePolicyServer"]
