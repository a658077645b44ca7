"""Authentication and authorization.

Two credentials are accepted in the Authorization header:
1. The admin's JWT access token (from /api/users/adm/authenticate)
2. The master key — a static, configured superuser capability

Both resolve to a CurrentIdentity that services check before mutating state.
"""
