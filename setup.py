#!/usr/bin/env python3
"""
Setup script for rollout-manager.
Installs the agent endpoint and the fleet orchestrator.
"""

from setuptools import setup, find_packages

# Most configuration is in pyproject.toml
# This file exists for compatibility with older pip versions

setup(
    packages=find_packages(include=["rollout_manager", "rollout_manager.*"]),
)
