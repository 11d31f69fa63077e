"""Integration test package.

These tests exercise complete document workflows through the
workspace facade, the JSON API and the command line.
"""
