"""Alfie daemon: keeps local gog credentials in sync with the tenant's linked Google accounts."""
