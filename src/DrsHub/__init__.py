"""DrsHub: resolve GA4GH DRS URIs into metadata, credentials and access URLs."""

__version__ = "0.1.0"
