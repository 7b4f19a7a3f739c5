"""
Location Services Module

Geocoding resolution cascade, distance calculations and proximity queries.
Local data first (matching location text, zip codes), Google Geocoding API
second, approximate zip match as a last resort.

Usage:
    from geocodable.services.location.resolver import GeocodeResolver
    from geocodable.services.location.distance import sphere_distance_between
    from geocodable.services.location.proximity import find_within_distance
"""
