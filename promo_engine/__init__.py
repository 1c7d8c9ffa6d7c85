"""
Promotions rule engine.

Evaluates gameplay events against promotion definitions, tracks per-player
progress (ladders and collections), enforces caps and cooldowns, and explains
every decision with an ordered reason trail.
"""

__version__ = "0.1.0"
