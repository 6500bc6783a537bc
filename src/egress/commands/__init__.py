"""Command implementations for the egress firewall CLI."""
