"""Endpoint helpers for the IIoT platform REST API.

Internal to pyiiot and may change at any time.
"""
