"""Intake funnel: engagement sessions, scoring, a reconnecting event channel, and staff routing.

A deployment describes itself with an :class:`IntakeConfig`; everything
else is built from it.

Public API::

    from intake_funnel import IntakeConfig
    from intake_funnel.tracker import BehaviorTracker
    from intake_funnel.channel import EventChannel, create_transport
    from intake_funnel.routing import StaffDirectory, load_staff_directory
"""

from intake_funnel.config import IntakeConfig

__all__ = ["IntakeConfig"]
__version__ = "0.1.0"
