"""Clients for external collaborators: authentication, email and payment providers."""
