# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests for the type dependency graph.

This package contains end-to-end tests that run manifests through the
resolver, builder, service and store together.
"""
