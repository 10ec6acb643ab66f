# lease_agent/network/__init__.py
"""
Kernel link, address and route configuration
"""

from .link import LinkConfigurator, PyRoute2LinkConfigurator, parse_ip_net, parse_route_dst

__all__ = [
    'LinkConfigurator',
    'PyRoute2LinkConfigurator',
    'parse_ip_net',
    'parse_route_dst'
]
