"""Core domain types: errors and protocol constants."""
