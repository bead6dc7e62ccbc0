"""Game constants for the Diamonds trial"""

from typing import Dict, List

# Phases
PHASE_IDLE = 'idle'
PHASE_BRIEFING = 'briefing'
PHASE_SHUFFLE = 'shuffle'
PHASE_DEALING = 'dealing'
PHASE_SLOTTING = 'slotting'
PHASE_EVALUATION = 'evaluation'
PHASE_SCORING = 'scoring'
PHASE_PICKING = 'picking'
PHASE_END = 'end'

PHASES = [
    PHASE_IDLE, PHASE_BRIEFING, PHASE_SHUFFLE, PHASE_DEALING, PHASE_SLOTTING,
    PHASE_EVALUATION, PHASE_SCORING, PHASE_PICKING, PHASE_END,
]

# Phases after which opponents' committed slots may be shown
REVEAL_PHASES = [PHASE_EVALUATION, PHASE_SCORING, PHASE_PICKING]

DEFAULT_PHASE_DURATIONS: Dict[str, int] = {
    PHASE_IDLE: 0,
    PHASE_BRIEFING: 10,
    PHASE_SHUFFLE: 5,
    PHASE_DEALING: 5,
    PHASE_SLOTTING: 80,
    PHASE_EVALUATION: 10,
    PHASE_SCORING: 30,
    PHASE_PICKING: 10,
    PHASE_END: 0,
}

# Player status
STATUS_ACTIVE = 'active'
STATUS_ELIMINATED = 'eliminated'
STATUS_SURVIVED = 'survived'

# Cards
SUITS = ['hearts', 'diamonds', 'clubs', 'spades']
RANKS = ['2', '3', '4', '5', '6', '7', '8', '9', '10', 'J', 'Q', 'K', 'A']
FACE_VALUES = {'J': 11, 'Q': 12, 'K': 13, 'A': 14}

KIND_STANDARD = 'standard'
KIND_SPECIAL = 'special'

SPECIAL_ZOMBIE = 'zombie'
SPECIAL_INJECTION = 'injection'
SPECIAL_SHOTGUN = 'shotgun'
SPECIAL_TYPES = [SPECIAL_ZOMBIE, SPECIAL_INJECTION, SPECIAL_SHOTGUN]

# Special card allotment for a whole session
SPECIAL_DECK: List[str] = [
    SPECIAL_ZOMBIE,
    SPECIAL_INJECTION, SPECIAL_INJECTION,
    SPECIAL_SHOTGUN, SPECIAL_SHOTGUN,
]

SLOT_COUNT = 5
ZOMBIE_VALUE = 999
CURE_MIN_VALUE = 2
CURE_MAX_VALUE = 9
CURED_SUIT = 'hearts'

# Battle effects
EFFECT_INFECTED = 'infected'
EFFECT_CURED = 'cured'
EFFECT_ELIMINATED = 'eliminated'

REASON_ZOMBIE = 'zombie'
REASON_ZOMBIE_CLASH = 'zombie_clash'
REASON_INJECTION = 'injection'
REASON_SHOTGUN = 'shotgun'

# Slot outcome labels (display only)
OUTCOME_CLASH = 'clash'
OUTCOME_DRAW = 'draw'
OUTCOME_ELIMINATED = 'eliminated'

# Store tables
TABLE_HANDS = 'hands'
TABLE_SLOTS = 'slots'
TABLE_POWERS = 'powers'
TABLE_PICKS = 'picks'
TABLE_EVALUATIONS = 'evaluations'

# Identity roles
ROLE_PLAYER = 'player'
ROLE_MASTER = 'master'
ROLE_ADMIN = 'admin'
PRIVILEGED_ROLES = [ROLE_MASTER, ROLE_ADMIN]

# Error codes
ERROR_WRONG_PHASE = 'WRONG_PHASE'
ERROR_NOT_PARTICIPANT = 'NOT_PARTICIPANT'
ERROR_NOT_ACTIVE = 'NOT_ACTIVE'
ERROR_OWNERSHIP = 'OWNERSHIP'
ERROR_INVALID_SLOTS = 'INVALID_SLOTS'
ERROR_ALREADY_LOCKED = 'ALREADY_LOCKED'
ERROR_POWER_USED = 'POWER_USED'
ERROR_NO_STANDARD_CARDS = 'NO_STANDARD_CARDS'
ERROR_NO_OFFER = 'NO_OFFER'
ERROR_ALREADY_PICKED = 'ALREADY_PICKED'
ERROR_CARD_UNAVAILABLE = 'CARD_UNAVAILABLE'
ERROR_NOT_AUTHORIZED = 'NOT_AUTHORIZED'
ERROR_NO_SESSION = 'NO_SESSION'
ERROR_CONFLICT = 'CONFLICT'
ERROR_STORE = 'STORE_UNAVAILABLE'
