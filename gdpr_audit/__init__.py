"""GDPR compliance auditing for single web pages.

Drives a headless browser through one page load, captures the network and
cookie telemetry emitted during that load, and scores the page against a set
of consent, policy and privacy heuristics.
"""

__version__ = "1.0.0"
