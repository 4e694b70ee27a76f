# --- Delivery Priorities ---
# Higher rank = delivered earlier
PRIORITY_LOW = 'LOW'
PRIORITY_NORMAL = 'NORMAL'
PRIORITY_HIGH = 'HIGH'
PRIORITY_URGENT = 'URGENT'

PRIORITY_RANKS = {
    PRIORITY_LOW: 1,
    PRIORITY_NORMAL: 2,
    PRIORITY_HIGH: 3,
    PRIORITY_URGENT: 4,
}
PRIORITY_CHOICES = [(name, name.title()) for name in PRIORITY_RANKS]
DEFAULT_DELIVERY_PRIORITY = PRIORITY_NORMAL
MAX_PRIORITY_RANK = max(PRIORITY_RANKS.values())

# --- Order status of deliveries sitting in a driver's vehicle ---
ORDER_STATUS_PICKED_UP = 'PICKED_UP'

# --- Algorithms ---
ALGORITHM_SINGLE_ORDER = 'SINGLE_ORDER'
ALGORITHM_PRIORITY_BASED = 'PRIORITY_BASED'
ALGORITHM_PRIORITY_WITH_DISTANCE = 'PRIORITY_WITH_DISTANCE'
ALGORITHM_NEAREST_NEIGHBOR = 'NEAREST_NEIGHBOR'
ALGORITHM_MULTI_START_NEAREST_NEIGHBOR = 'MULTI_START_NEAREST_NEIGHBOR'
ALGORITHM_HYBRID = 'HYBRID'

# Legacy names kept for existing API clients; both run the multi-start heuristic
ALGORITHM_ALIASES = {
    'GENETIC': ALGORITHM_MULTI_START_NEAREST_NEIGHBOR,
    'OR_TOOLS': ALGORITHM_MULTI_START_NEAREST_NEIGHBOR,
    'PRIORITY': ALGORITHM_PRIORITY_BASED,
}

SELECTABLE_ALGORITHMS = (
    ALGORITHM_PRIORITY_BASED,
    ALGORITHM_PRIORITY_WITH_DISTANCE,
    ALGORITHM_NEAREST_NEIGHBOR,
    ALGORITHM_MULTI_START_NEAREST_NEIGHBOR,
)

# Size thresholds for automatic selection
PRIORITY_ONLY_MAX_ORDERS = 3
NEAREST_NEIGHBOR_MAX_ORDERS = 10

# --- Weighted nearest neighbour ---
DEFAULT_DISTANCE_WEIGHT = 0.7
DEFAULT_PRIORITY_WEIGHT = 0.3

# (distance_weight, priority_weight) pairs tried by the multi-start heuristic
MULTI_START_WEIGHT_SETS = [
    (0.8, 0.2),
    (0.7, 0.3),
    (0.6, 0.4),
    (0.5, 0.5),
]

ESTIMATED_IMPROVEMENTS = {
    ALGORITHM_SINGLE_ORDER: '0%',
    ALGORITHM_PRIORITY_BASED: '0%',
    ALGORITHM_PRIORITY_WITH_DISTANCE: '15-25%',
    ALGORITHM_NEAREST_NEIGHBOR: '25-40%',
    ALGORITHM_MULTI_START_NEAREST_NEIGHBOR: '30-50%',
}

# --- Estimates used when no map data is available ---
ESTIMATED_MINUTES_PER_ORDER = 15
ESTIMATED_KM_PER_ORDER = 5
TRAFFIC_ESTIMATE_MULTIPLIER = 1.2

OPTIMIZATION_VERSION = '1.0.0'

# --- Google API limits ---
MAX_MATRIX_ELEMENTS_PER_REQUEST = 100
MAX_MATRIX_DIMENSION = 25
MAX_DIRECTIONS_WAYPOINTS = 23

GOOGLE_MAPS_DIR_URL = 'https://www.google.com/maps/dir/'

# --- Address parsing ---
KNOWN_AREAS = ['Zamalek', 'Dokki', 'Downtown', 'Maadi', 'Heliopolis', 'Nasr City', 'New Cairo']
KNOWN_GOVERNORATES = ['Cairo', 'Giza', 'Alexandria', 'Qalyubia']
DEFAULT_AREA = 'Unknown'
DEFAULT_GOVERNORATE = 'Cairo'
