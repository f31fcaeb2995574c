"""
Services layer for persistence and external communications.

This layer handles:
- Chat room / message storage
- Product, user and order lookups
- Integration events and sale recording
"""
