"""msgqueue — a small authenticated JSON message queue.

Clients log in with a username and password, receive a bearer API key,
and use it to append, page through, and purge JSON messages held in a
single transactional store.
"""

__version__ = "0.1.0"
