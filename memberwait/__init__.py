"""Polling helpers and wait criteria for member-cluster resources in end-to-end tests."""

__version__ = "0.1.0"
__all__ = [
    "stringify",
    "templateref",
    "polling",
    "criteria",
    "workload_criteria",
    "member_core",
    "member",
]