"""
Tenant lifecycle and database provisioning control plane
"""

__version__ = "1.0.0"
