"""Authentication and authorization.

Learn: One authentication path, in two steps:
1. Username/password → CredentialStore → user id → APIKeyManager → bearer key
2. Every later request → Authorization: Bearer <key> → role → route

Keys are opaque random tokens, stored only as digests. A user holds at
most one live key; logging in again replaces it.
"""
