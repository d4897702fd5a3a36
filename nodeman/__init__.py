"""
Nodeman - tag-driven lifecycle controller for EC2, RDS and Auto Scaling resources.

Each invocation reads policy from resource tags (schedules, idle thresholds,
max runtime, dependencies) and starts, stops or terminates resources to match.
"""

__version__ = "0.1.0"
__author__ = "Nodeman"
