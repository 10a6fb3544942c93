"""APM transaction latency monitoring agent"""

__version__ = '1.0.0'
