"""
Twisted client-side proxies for Telepathy connections.
"""
