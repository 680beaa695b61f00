"""Deal views -- workflow stage projection, status labels, HubSpot stage mapping and schemas.

The SOW backend owns every workflow value; this package only reads and
projects them for display and gating.
"""
