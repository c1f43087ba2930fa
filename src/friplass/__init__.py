"""
Friplass - peer-to-peer marketplace for boat moorings, motorhome spots and camping spots.

Hosts publish listings through a multi-step draft wizard; visitors browse,
filter, search and favorite them. Listings are stored in a flat JSON file.
"""

__version__ = "0.1.0"
