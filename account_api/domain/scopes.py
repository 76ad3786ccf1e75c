"""
Authorization scopes granted to access tokens.

A scope limits what a token may be used for, independently of who the token
belongs to. Routes name the scope they require; the ability checks in
:mod:`account_api.application.services.authorization` then decide whether
the particular caller may act on the particular account.
"""

READ_GENERAL = "read-general"
"""Authorizes reading general listings, such as the account index."""

MANAGE_ACCOUNT = "manage-account"
"""Authorizes reading and modifying account details."""

KNOWN_SCOPES = frozenset({READ_GENERAL, MANAGE_ACCOUNT})
