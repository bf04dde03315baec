"""
Popup Service

Campaign popup targeting engine providing:
- Page, device and language targeting
- Date, weekday and time-of-day scheduling
- Per-visitor frequency capping (session, daily, total, cooldown)
- Trigger arming for page load, delay, scroll depth, exit intent,
  inactivity, custom events and manual button triggers
- Single active popup lifecycle with view/conversion events
"""

__version__ = "1.0.0"
__service__ = "popup_service"
