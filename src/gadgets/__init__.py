"""
Gadget container services.

Subpackages:
    oauth2  - OAuth2 client runtime used to fetch protected resources on
              behalf of gadgets
"""
