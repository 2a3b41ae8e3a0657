"""Test case record tracker for browser automation"""
