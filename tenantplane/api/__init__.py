"""
HTTP surface: tenant signup, lookup and verification
"""
