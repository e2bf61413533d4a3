"""Topic catalog, the 60-day roadmap and locally built fallback lessons."""
from safety_tutor.models import TOTAL_DAYS
from safety_tutor.schemas import Lesson

CHECKPOINT_INTERVAL = 5
REGULAR_QUESTIONS = 5
CHECKPOINT_QUESTIONS = 10

TOPIC_CATEGORIES = [
    {
        "id": "general-safety",
        "name": "General Safety",
        "name_vietnamese": "An toàn chung",
        "description": "Basic safety concepts, signs, PPE, and workplace rules",
    },
    {
        "id": "chemicals",
        "name": "Chemical Safety",
        "name_vietnamese": "An toàn hóa chất",
        "description": "Chemical labels, handling, and storage safety",
    },
    {
        "id": "electrical",
        "name": "Electrical Safety",
        "name_vietnamese": "An toàn điện",
        "description": "Electrical hazards, LOTO, and power equipment",
    },
    {
        "id": "height-work",
        "name": "Work at Height",
        "name_vietnamese": "Làm việc trên cao",
        "description": "Scaffolding, ladders, fall protection, and harness safety",
    },
    {
        "id": "equipment",
        "name": "Equipment & Machinery",
        "name_vietnamese": "Thiết bị & Máy móc",
        "description": "Tools, machines, cranes, and forklifts",
    },
    {
        "id": "emergency",
        "name": "Emergency Response",
        "name_vietnamese": "Ứng phó khẩn cấp",
        "description": "First aid, fire safety, and emergency procedures",
    },
]

# Days 1-30: foundation. Days 31-60: application. Every 5th day is a test.
DAY_TITLES = [
    "Safety First (Introduction)", "Safety Colors & Signs", "Numbers & Quantities on Site",
    "Basic PPE (Head & Feet)", "CHECKPOINT TEST 1",
    "Eye & Ear Protection", "Hand Protection (Gloves)", "Work Clothing (High-Vis)",
    "Tools: Hand Tools", "CHECKPOINT TEST 2",
    "Tools: Power Tools", "Slips and Trips", "Lifting Heavy Things",
    "Using a Ladder", "CHECKPOINT TEST 3",
    "Fire: Basic Words", "Fire Extinguishers", "Electricity: On/Off",
    "Electrical Cords & Plugs", "CHECKPOINT TEST 4",
    "Chemicals: Warning Labels", "Cleaning Safety", "Dust & Fumes",
    "Ventilation Basics", "CHECKPOINT TEST 5",
    "First Aid Kit", "Minor Cuts & Bruises", "Reporting an Injury",
    "Emergency Numbers", "CHECKPOINT TEST 6",
    "Hazard Identification", "Risk Assessment Basics", "Work Permits",
    "Site Rules", "CHECKPOINT TEST 7",
    "Working at Height (Scaffolding)", "Fall Harness Safety", "Falling Objects",
    "Barricades & Tapes", "CHECKPOINT TEST 8",
    "Lockout / Tagout (LOTO)", "Machine Guards", "Emergency Stop Buttons",
    "Conveyor Belt Safety", "CHECKPOINT TEST 9",
    "Confined Spaces (Basics)", "Gas Testing", "The Buddy System",
    "Rescue Equipment", "CHECKPOINT TEST 10",
    "Crane Signals", "Forklift Safety", "Trucks & Traffic",
    "Pedestrian Walkways", "CHECKPOINT TEST 11",
    "Noise Control", "Heat Stress", "Environmental Spills",
    "Safety Culture", "FINAL CERTIFICATION EXAM",
]


def get_topic(topic_id: str) -> dict | None:
    return next((t for t in TOPIC_CATEGORIES if t["id"] == topic_id), None)


def is_valid_day(day_id) -> bool:
    return isinstance(day_id, int) and not isinstance(day_id, bool) and 1 <= day_id <= TOTAL_DAYS


def is_checkpoint(day_id: int) -> bool:
    return day_id % CHECKPOINT_INTERVAL == 0


def question_count(day_id: int) -> int:
    return CHECKPOINT_QUESTIONS if is_checkpoint(day_id) else REGULAR_QUESTIONS


def review_range(day_id: int) -> tuple[int, int] | None:
    """First and last day reviewed by a checkpoint, or None for a regular day."""
    if not is_checkpoint(day_id):
        return None
    return day_id - (CHECKPOINT_INTERVAL - 1), day_id - 1


def day_title(day_id: int) -> str:
    if 1 <= day_id <= len(DAY_TITLES):
        return DAY_TITLES[day_id - 1]
    return f"Day {day_id} Topic"


def lesson_title(day_id: int) -> str:
    title = day_title(day_id)
    return f"REVIEW: {title}" if is_checkpoint(day_id) else title


def fallback_lesson(topic_id: str, day_id: int) -> Lesson:
    """Minimal lesson built without the generator. Always the same for a given key."""
    title = day_title(day_id)
    checkpoint = is_checkpoint(day_id)
    keyword = title.split(" ")[0].rstrip(":")
    return Lesson.model_validate({
        "topic_id": topic_id,
        "day_id": day_id,
        "title": lesson_title(day_id),
        "is_checkpoint": checkpoint,
        "vocabulary": [
            {"term": "Safety", "meaning": "Being safe; not dangerous",
             "example": "Safety is our priority.", "pronunciation": "/ˈseɪf.ti/"},
            {"term": keyword, "meaning": f"Related to {title}",
             "example": f"Learn about {title}.", "pronunciation": ""},
        ],
        "dialogue": [
            {"speaker": "Tom", "role": "Worker", "text": f"Tell me about {title}."},
            {"speaker": "Sam", "role": "Safety Officer", "text": "It's very important for safety."},
        ],
        "scenario": {
            "title": f"{title} Scenario",
            "description": f"A situation involving {title}.",
            "risk_level": "Critical" if checkpoint else "High",
        },
        "quiz": [
            {
                "id": 0,
                "prompt": f"What is important about {title}?",
                "options": ["Safety comes first", "Speed is priority", "Cost matters most", "No rules needed"],
                "correct_option": 0,
            },
        ],
    })


# Core terms every topic's dictionary starts from
CORE_TERMS = [
    {"term": "Abatement", "meaning": "Putting an end to a nuisance or hazard."},
    {"term": "Acute Exposure", "meaning": "Single exposure to a toxic substance causing severe damage."},
    {"term": "PPE", "meaning": "Personal Protective Equipment like helmets and gloves."},
    {"term": "Hazard", "meaning": "Anything that can cause harm."},
    {"term": "Risk", "meaning": "The chance that a hazard will cause harm."},
    {"term": "Safety Sign", "meaning": "A sign that gives a warning or instruction."},
    {"term": "Emergency Stop", "meaning": "A button to stop a machine instantly."},
    {"term": "First Aid", "meaning": "Help given to a sick or injured person until full medical treatment is available."},
    {"term": "Evacuation", "meaning": "Leaving a dangerous place to go to a safe place."},
    {"term": "Flammable", "meaning": "Easily set on fire."},
]
CORE_TOPIC = "general-safety"
