"""Billing: subscriptions, entitlements, promotional codes and payments."""
