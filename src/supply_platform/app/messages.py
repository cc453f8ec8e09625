"""User-facing response messages shared by the API routes."""


def find_all_message(entity: str) -> str:
    return f"{entity}s retrieved successfully"


def find_by_id_message(entity: str, entity_id: int) -> str:
    return f"{entity} with ID {entity_id} retrieved successfully"


def created_message(entity: str) -> str:
    return f"{entity} created successfully"


def updated_message(entity: str) -> str:
    return f"{entity} updated successfully"


def deleted_message(entity: str) -> str:
    return f"{entity} deleted successfully"


def search_message(entity: str, count: int) -> str:
    return f"Found {count} {entity.lower()}(s)"


INTERNAL_ERROR = "Internal server error"
STORAGE_ERROR = "Internal storage error"
INVALID_REQUEST = "Invalid request"
