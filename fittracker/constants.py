"""Shared literals used across storage, services and the web layer."""

NO_ACTIVITY_MARKER = "Még nincs aktivitás"

MEAL_TYPES: tuple[str, ...] = ("breakfast", "lunch", "dinner", "snack")
MEAL_TYPE_LABELS = {
    "breakfast": "Reggeli",
    "lunch": "Ebéd",
    "dinner": "Vacsora",
    "snack": "Snack",
}

SUPPLEMENT_CATEGORIES: tuple[str, ...] = (
    "vitamin",
    "digestive",
    "joint",
    "extract",
    "sleep",
    "pre-workout",
)

ROLE_ADMIN = "admin"
ROLE_CLIENT = "client"

SPREADSHEET_MIME = "application/vnd.google-apps.spreadsheet"
DOCUMENT_MIME = "application/vnd.google-apps.document"
