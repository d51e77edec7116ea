"""Plura back office API: agencies, subaccounts, membership and access control."""
