# services/access_policy.py
"""Authorization rules for quizzes and attempts.

Callers are the identity dicts produced by ``routes.auth.get_current_user``:
``{"id", "name", "email", "role"}`` where ``role`` is a :class:`Role`.
Every decision matches on the role explicitly; an unrecognised role is
never granted anything.
"""
from typing import Optional

from models.user import Role

# Once a quiz has attempts, these are the only fields an update may touch
EDITABLE_FIELDS_WITH_ATTEMPTS = frozenset({"isActive"})


def is_admin(caller: Optional[dict]) -> bool:
    return bool(caller) and caller.get("role") is Role.ADMIN


def is_attempt_owner(caller: Optional[dict], attempt: dict) -> bool:
    if not caller:
        return False
    user_id = attempt.get("studentUserId")
    if user_id and user_id == caller.get("id"):
        return True
    email = attempt.get("studentEmail")
    caller_email = (caller.get("email") or "").lower()
    return bool(email) and email == caller_email


def is_quiz_creator(caller: Optional[dict], quiz: Optional[dict]) -> bool:
    return bool(caller and quiz and quiz.get("createdBy") == caller.get("id"))


def can_view_attempt(caller: Optional[dict], attempt: dict, quiz: Optional[dict]) -> bool:
    # Owner first, then role admin, then an admin who created the quiz.
    # The last grant is a subset of the role check while only two roles exist.
    if is_attempt_owner(caller, attempt):
        return True
    if is_admin(caller):
        return True
    return is_admin(caller) and is_quiz_creator(caller, quiz)


def can_list_quiz_attempts(caller: Optional[dict], quiz: dict) -> bool:
    return is_quiz_creator(caller, quiz) or is_admin(caller)


def can_view_inactive_quizzes(caller: Optional[dict]) -> bool:
    return is_admin(caller)


def can_mutate_quiz(caller: Optional[dict], quiz: dict) -> bool:
    return is_quiz_creator(caller, quiz) or is_admin(caller)


def is_frozen_update_allowed(changed_fields) -> bool:
    """True when an update to a quiz with attempts only touches isActive."""
    fields = set(changed_fields)
    return bool(fields) and fields <= EDITABLE_FIELDS_WITH_ATTEMPTS


def my_attempts_filter(caller: dict) -> dict:
    clauses = [{"studentEmail": (caller.get("email") or "").lower()}]
    if caller.get("id"):
        clauses.insert(0, {"studentUserId": caller["id"]})
    return {"$or": clauses}


def can_register_admin(admin_code: Optional[str], configured_code: Optional[str], admin_exists: bool) -> bool:
    """Admin signup needs the configured access code, or, with no code set,
    is open only until the first admin exists."""
    if configured_code:
        return bool(admin_code) and admin_code == configured_code
    return not admin_exists
