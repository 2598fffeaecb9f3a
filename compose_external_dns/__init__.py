"""
Compose-External-DNS: keeps Cloudflare DNS records in sync with Docker container labels.
"""

__version__ = "0.1.0"
