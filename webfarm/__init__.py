"""
WebFarm background worker host.

Discovers executable bundles deployed under each site, runs them from
isolated copies, restarts crashed instances and tears them down on redeploy.
"""

__version__ = "0.1.0"
