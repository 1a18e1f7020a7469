"""Transactional integrity core: rate limiting, replay protection and payment settlement."""

__version__ = "0.1.0"
