"""
Synthetic Kent locations, road names and demo trip templates.

Locations cover the Sevenoaks and Tunbridge Wells commuter areas plus a few
common family destinations. Road names are real Kent roads and are what the
route provider labels its candidate routes with; the traffic simulator keys
its conditions on the same names.
"""

from typing import Any, Dict, List, Optional

from common.models import Location

KENT_LOCATIONS: List[Dict[str, Any]] = [
    # Sevenoaks area
    {"name": "Sevenoaks High Street", "address": "High Street, Sevenoaks, Kent",
     "latitude": 51.2719, "longitude": 0.1904, "type": "commercial", "postcode": "TN13 1UT"},
    {"name": "Sevenoaks Railway Station", "address": "Station Approach, Sevenoaks, Kent",
     "latitude": 51.2737, "longitude": 0.1887, "type": "station", "postcode": "TN13 1DU"},
    {"name": "Sevenoaks Primary School", "address": "Granville Road, Sevenoaks, Kent",
     "latitude": 51.2756, "longitude": 0.1923, "type": "school", "postcode": "TN13 1LT"},
    {"name": "Bradbourne Vale Road (Residential)", "address": "Bradbourne Vale Road, Sevenoaks, Kent",
     "latitude": 51.2689, "longitude": 0.1845, "type": "residential", "postcode": "TN13 3QG"},

    # Tunbridge Wells area
    {"name": "Tunbridge Wells Central Station", "address": "Mount Pleasant Road, Tunbridge Wells, Kent",
     "latitude": 51.1321, "longitude": 0.2634, "type": "station", "postcode": "TN1 1QR"},
    {"name": "The Pantiles", "address": "The Pantiles, Tunbridge Wells, Kent",
     "latitude": 51.1307, "longitude": 0.2639, "type": "commercial", "postcode": "TN2 5TN"},
    {"name": "Tunbridge Wells Hospital", "address": "Tonbridge Road, Tunbridge Wells, Kent",
     "latitude": 51.1285, "longitude": 0.2341, "type": "healthcare", "postcode": "TN2 4QJ"},
    {"name": "Rusthall Common (Residential)", "address": "Nellington Road, Tunbridge Wells, Kent",
     "latitude": 51.1167, "longitude": 0.2267, "type": "residential", "postcode": "TN4 8YB"},

    # Other commuter towns
    {"name": "Dartford Railway Station", "address": "Lowfield Street, Dartford, Kent",
     "latitude": 51.4467, "longitude": 0.2142, "type": "station", "postcode": "DA1 1NB"},
    {"name": "Gravesend Station", "address": "Railway Street, Gravesend, Kent",
     "latitude": 51.4419, "longitude": 0.3708, "type": "station", "postcode": "DA11 0AU"},
    {"name": "Maidstone East Station", "address": "Sandling Road, Maidstone, Kent",
     "latitude": 51.2735, "longitude": 0.5186, "type": "station", "postcode": "ME14 2BE"},
    {"name": "Canterbury Cathedral", "address": "Cathedral Lodge, Canterbury, Kent",
     "latitude": 51.2799, "longitude": 1.0830, "type": "commercial", "postcode": "CT1 2EH"},

    # Family destinations
    {"name": "Bluewater Shopping Centre", "address": "Greenhithe, Dartford, Kent",
     "latitude": 51.4387, "longitude": 0.2744, "type": "commercial", "postcode": "DA9 9ST"},
    {"name": "Knole Academy", "address": "Seal Hollow Road, Sevenoaks, Kent",
     "latitude": 51.2834, "longitude": 0.1756, "type": "school", "postcode": "TN13 3SE"},
    {"name": "Kumon Math Centre Sevenoaks", "address": "London Road, Sevenoaks, Kent",
     "latitude": 51.2745, "longitude": 0.1967, "type": "school", "postcode": "TN13 1AS"},
]

PRIMARY_ROADS = [
    "A21 (London Road)",
    "A25 (High Street)",
    "A224 (Dartford Road)",
    "A225 (London Road)",
    "A227 (Gravesend Road)",
    "A228 (Basted Mill)",
]

SECONDARY_ROADS = [
    "Via Seal Hollow Road",
    "Via Bradbourne Vale Road",
    "Via Tonbridge Road",
    "Via Mount Pleasant Road",
    "Via Pembury Road",
    "Via St Johns Hill",
]

MOTORWAYS = [
    "M25 Junction 5",
    "M26",
    "M20 Junction 4",
    "A2(M)",
]

# Route names are handed out round-robin from this catalogue
ROUTE_NAME_CATALOGUE = PRIMARY_ROADS + SECONDARY_ROADS

# Demo trips keyed by persona; schedules follow the personas' routines
DEMO_TRIPS: List[Dict[str, Any]] = [
    {
        "name": "Leo's Tuition",
        "origin": "Bradbourne Vale Road (Residential)",
        "destination": "Kumon Math Centre Sevenoaks",
        "persona": "Alex",
        "schedule": {"days": [2], "window_start": "16:30", "window_end": "16:45"},
        "alert_threshold": {"type": "MINUTES", "value": 10},
    },
    {
        "name": "School Run",
        "origin": "Bradbourne Vale Road (Residential)",
        "destination": "Knole Academy",
        "persona": "Alex",
        "schedule": {"days": [1, 2, 3, 4, 5], "window_start": "08:15", "window_end": "08:30"},
        "alert_threshold": {"type": "PERCENTAGE", "value": 25},
    },
    {
        "name": "London Commute",
        "origin": "Rusthall Common (Residential)",
        "destination": "Tunbridge Wells Central Station",
        "persona": "Chloe",
        "schedule": {"days": [1, 2, 3, 4, 5], "window_start": "07:10", "window_end": "07:30"},
        "alert_threshold": {"type": "MINUTES", "value": 5},
    },
    {
        "name": "Client Meeting",
        "origin": "Rusthall Common (Residential)",
        "destination": "Sevenoaks High Street",
        "persona": "Chloe",
        "schedule": {"days": [3], "window_start": "09:00", "window_end": "09:30"},
        "alert_threshold": {"type": "PERCENTAGE", "value": 30},
    },
]


def find_location(name: str) -> Optional[Location]:
    """Look up a catalogue location by its display name (case-insensitive)."""
    wanted = name.strip().lower()
    for entry in KENT_LOCATIONS:
        if entry["name"].lower() == wanted:
            return Location(
                latitude=entry["latitude"],
                longitude=entry["longitude"],
                address=f"{entry['address']} {entry['postcode']}",
                name=entry["name"],
            )
    return None


def locations_by_type(location_type: str) -> List[Dict[str, Any]]:
    return [entry for entry in KENT_LOCATIONS if entry["type"] == location_type]
