"""Accounts: tenants, user profiles, invitations and registration."""
