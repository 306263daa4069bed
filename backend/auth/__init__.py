"""
Authentication package.

Provides:
- Steam OpenID 2.0 login (redirect building and callback validation)
- HMAC-signed access/refresh token issuance and verification
- Bearer token gate dependencies for protected endpoints
"""
