"""Constants for timetable generation."""

# Day numbering follows ISO weekdays: 1 = Monday ... 7 = Sunday
DAY_NAMES = {
    1: "monday",
    2: "tuesday",
    3: "wednesday",
    4: "thursday",
    5: "friday",
    6: "saturday",
    7: "sunday",
}

DEFAULT_WORKING_DAYS = [1, 2, 3, 4, 5]
DEFAULT_DAILY_PERIODS = 8
DEFAULT_MORNING_PERIODS = [1, 2, 3, 4]
DEFAULT_AFTERNOON_PERIODS = [5, 6, 7, 8]

# Subjects treated as the core tier when the rules do not name their own
DEFAULT_CORE_SUBJECTS = ("语文", "数学", "英语")

# Variable priorities (1..10, higher first)
CORE_PRIORITY = 8
DEFAULT_PRIORITY = 5

# Same subject per class per day for non-core subjects
DEFAULT_ELECTIVE_DAILY_LIMIT = 1

# Algorithm defaults
DEFAULT_MAX_ITERATIONS = 100_000
DEFAULT_TIME_LIMIT = 300  # seconds
DEFAULT_BACKTRACK_LIMIT = 1000
DEFAULT_LOCAL_OPTIMIZATION_ITERATIONS = 200

# Stage names used in statistics and progress events
STAGE_FIXED = "fixed_time"
STAGE_EXCLUSION = "time_exclusion"
STAGE_CORE = "core_subjects"
STAGE_GENERAL = "general_subjects"
STAGE_OPTIMIZATION = "optimization"

# Special course category -> keywords found in course name or subject
SPECIAL_COURSE_KEYWORDS = {
    "pe": ("体育", "pe", "physical", "gym", "sports", "athletics"),
    "music": ("音乐", "music"),
    "art": ("美术", "art"),
    "dance": ("舞蹈", "dance"),
    "computer": ("信息技术", "computer", "tech", "programming", "编程"),
    "lab": ("实验", "物理实验", "化学实验", "生物实验", "lab", "laboratory", "practical"),
    "craft": ("手工", "handcraft", "craft", "woodwork", "metalwork"),
    "counseling": ("心理健康", "心理", "counseling"),
}

# Special course category -> room types that may host it
COURSE_ROOM_TYPES = {
    "pe": ("gym", "sports", "playground", "体育场", "体育馆", "操场"),
    "music": ("music", "art", "音乐室", "艺术室", "琴房"),
    "art": ("art", "美术室", "画室", "艺术室"),
    "dance": ("dance", "art", "舞蹈室", "艺术室"),
    "computer": ("computer", "lab", "机房", "计算机室", "多媒体教室"),
    "lab": ("lab", "laboratory", "实验室", "实验楼"),
    "craft": ("handcraft", "craft", "手工室", "工艺室"),
    "counseling": ("counseling", "心理室", "咨询室", "普通教室"),
}

GENERIC_ROOM_TYPES = ("classroom", "普通教室")

ROOM_TYPE_PRIORITY = {
    "gym": 100,
    "sports": 100,
    "playground": 100,
    "体育场": 100,
    "体育馆": 100,
    "操场": 100,
    "music": 95,
    "音乐室": 95,
    "琴房": 95,
    "art": 90,
    "美术室": 90,
    "艺术室": 90,
    "computer": 85,
    "机房": 85,
    "lab": 80,
    "laboratory": 80,
    "实验室": 80,
    "classroom": 50,
    "普通教室": 50,
    "备用教室": 30,
    "临时教室": 20,
}
DEFAULT_ROOM_TYPE_PRIORITY = 50

# Room scoring
SPECIAL_ROOM_BASE_SCORE = 80
SPECIAL_ROOM_MAX_SCORE = 100
SPECIAL_ROOM_PRIORITY_FACTOR = 0.4
NON_MATCHING_ROOM_SCORE = 20
GENERIC_ROOM_BONUS = 10
CAPACITY_FIT_BASE = 20
CAPACITY_HEADROOM = 1.1
MAX_FLOOR_BONUS = 3

# Core subject strategy defaults
DEFAULT_CORE_MAX_DAILY_OCCURRENCES = 2
DEFAULT_CORE_MIN_DAYS_PER_WEEK = 4
DEFAULT_CORE_PREFERRED_PERIODS = [2, 3, 4]
DEFAULT_CORE_AVOID_PERIODS = [1, 7]
DEFAULT_CORE_MAX_CONCENTRATION = 2
DEFAULT_CORE_BALANCE_WEIGHT = 70

# Teacher constraint defaults
DEFAULT_TEACHER_MAX_DAILY_HOURS = 6
DEFAULT_TEACHER_MAX_CONTINUOUS_HOURS = 3
DEFAULT_MAX_CONTINUOUS_COURSE_HOURS = 2

# Soft constraint weights (penalty per violation)
SOFT_CONSTRAINT_WEIGHTS = {
    "SC-01": 30,  # Teacher daily load over max_daily_hours (per extra hour)
    "SC-02": 20,  # Teacher continuous run over max_continuous_hours
    "SC-03": 10,  # Teacher Friday afternoon
    "SC-04": 15,  # Variable preferred slots missed / avoided slots used
    "SC-05": 10,  # Teacher preferred / avoided slots
    "SC-06": 10,  # Subject in first or last period
    "SC-07": 15,  # Class same-subject continuous run
    "SC-08": 40,  # Core same-day occurrences over cap
    "SC-09": 25,  # Core spread below min days per week
    "SC-10": 8,  # Core period outside preferred / inside avoided periods
    "SC-11": 12,  # Core anti-clustering
    "SC-12": 1,  # Class daily load imbalance (scaled by balance weight)
}

# Small per-candidate cost that spreads a subject across days
SAME_DAY_SPREAD_PENALTY = 5
