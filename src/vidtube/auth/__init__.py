"""Authentication and session handling.

Learn: Sessions are a pair of JWTs.
1. Access token → sent on every request (Authorization header or
   ``accessToken`` cookie), verified statelessly by get_current_user
2. Refresh token → exchanged for a new pair, valid only while it matches
   the value stored on the user row

Both resolve to a ``CurrentUser`` identity that handlers receive explicitly.
"""
