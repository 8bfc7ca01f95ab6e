"""Static lookup tables for itinerary and schedule extraction.

Airline codes, activity keywords, and weekday/month vocabularies. These are
plain constants loaded at import time; nothing mutates them at runtime.
"""

# Airline IATA codes recognized in flight numbers, with display names
AIRLINE_NAMES = {
    "AA": "American Airlines",
    "DL": "Delta Air Lines",
    "UA": "United Airlines",
    "WN": "Southwest Airlines",
    "B6": "JetBlue",
    "AS": "Alaska Airlines",
    "NK": "Spirit Airlines",
    "F9": "Frontier Airlines",
    "G4": "Allegiant Air",
    "SY": "Sun Country Airlines",
    "BA": "British Airways",
    "AF": "Air France",
    "LH": "Lufthansa",
}

# Activity category -> regex alternatives (matched case-insensitively, whole words)
ACTIVITY_KEYWORDS = [
    {
        "type": "climbing",
        "patterns": [r"rock\s*climbing", r"climbing", r"bouldering"],
    },
    {
        "type": "tennis",
        "patterns": [r"tennis\s*lesson", r"tennis"],
    },
    {
        "type": "basketball",
        "patterns": [r"basketball", r"hoops", r"b-ball"],
    },
    {
        "type": "soccer",
        "patterns": [r"soccer", r"football"],
    },
    {
        "type": "swimming",
        "patterns": [r"swim\s*class", r"swimming"],
    },
    {
        "type": "music",
        "patterns": [r"music", r"piano", r"guitar", r"violin", r"lesson"],
    },
    {
        "type": "dance",
        "patterns": [r"dance", r"ballet", r"hip\s*hop"],
    },
    {
        "type": "art",
        "patterns": [r"art", r"painting", r"drawing"],
    },
    {
        "type": "tutoring",
        "patterns": [r"tutoring", r"tutor"],
    },
]

WEEKDAYS = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
    "Jan", "Feb", "Mar", "Apr", "Jun", "Jul", "Aug", "Sep", "Sept",
    "Oct", "Nov", "Dec",
]
