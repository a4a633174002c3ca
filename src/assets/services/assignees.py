"""Assignee identity: free-text parsing and the people directory.

Assignees are stored denormalised on each Assignment row (name and
optional email), so renaming or forgetting a person is a bulk update over
those rows. None of these operations touch asset status or the lifecycle
timeline.
"""

import logging
import re
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.core.validators import validate_email
from django.db import transaction as db_transaction
from django.db.models import Q

from ..exceptions import InvalidAssignee
from ..models import Assignment
from . import audit
from .permissions import require_admin

logger = logging.getLogger(__name__)

BRACKETED_EMAIL = re.compile(r"<([^<>]*)>")


@dataclass(frozen=True)
class Assignee:
    name: str
    email: str | None = None

    def __str__(self):
        if self.email:
            return f"{self.name} <{self.email}>"
        return self.name


def _clean_email(email):
    if email is not None and not isinstance(email, str):
        raise InvalidAssignee("Email must be text.")
    email = (email or "").strip().lower()
    if not email:
        return None
    try:
        validate_email(email)
    except ValidationError:
        raise InvalidAssignee(f"'{email}' is not a valid email address.")
    return email


def parse_assignee(text) -> Assignee:
    """Resolve free text into an assignee name and optional email.

    ``"Ama Boateng <ama@x.org>"`` gives name "Ama Boateng" and email
    "ama@x.org". Without angle brackets the whole trimmed text is the name
    and there is no email. A bracketed email with no name uses the email
    as the name.
    """
    if text is not None and not isinstance(text, str):
        raise InvalidAssignee("Assignee must be text.")
    text = (text or "").strip()
    if not text:
        raise InvalidAssignee()

    match = BRACKETED_EMAIL.search(text)
    if not match:
        return Assignee(name=" ".join(text.split()))

    email = _clean_email(match.group(1))
    name = " ".join((text[: match.start()] + text[match.end() :]).split())
    if not name and not email:
        raise InvalidAssignee()
    return Assignee(name=name or email, email=email)


def _person_key(name, email):
    if email:
        return email.lower()
    return f"name:{(name or '').strip().lower()}"


def _matching_rows(name, email):
    """Assignment rows that belong to the person identified by name/email."""
    if email:
        return Assignment.objects.filter(assignee_email__iexact=email.strip())
    return Assignment.objects.filter(
        Q(assignee_email__isnull=True) | Q(assignee_email=""),
        assignee_name=(name or "").strip(),
    )


def list_assignees(query="", page=1, page_size=20):
    """Return one page of the people directory.

    People are keyed by email when they have one, otherwise by their
    lower-cased name. Sorted by most recent assignment first.
    """
    rows = Assignment.objects.values(
        "assignee_name", "assignee_email", "assigned_at", "returned_at"
    ).order_by("assigned_at")

    people = {}
    for row in rows:
        key = _person_key(row["assignee_name"], row["assignee_email"])
        person = people.setdefault(
            key,
            {
                "key": key,
                "full_name": row["assignee_name"],
                "email": row["assignee_email"] or None,
                "active_count": 0,
                "total_count": 0,
                "last_assigned": None,
            },
        )
        person["total_count"] += 1
        if row["returned_at"] is None:
            person["active_count"] += 1
        # Rows come oldest first, so the latest name wins
        person["full_name"] = row["assignee_name"]
        person["last_assigned"] = row["assigned_at"]

    query = (query or "").strip().lower()
    results = [
        p
        for p in people.values()
        if not query
        or query in (p["full_name"] or "").lower()
        or query in (p["email"] or "")
    ]
    results.sort(key=lambda p: p["last_assigned"], reverse=True)

    paginator = Paginator(results, page_size)
    page_obj = paginator.get_page(page)
    return {
        "count": paginator.count,
        "page": page_obj.number,
        "num_pages": paginator.num_pages,
        "results": [
            dict(p, last_assigned=p["last_assigned"].isoformat())
            for p in page_obj.object_list
        ],
    }


def suggest_people(query="", limit=10):
    """Autocomplete strings in the ``Name <email>`` form."""
    qs = Assignment.objects.all()
    query = (query or "").strip()
    if query:
        qs = qs.filter(
            Q(assignee_name__icontains=query)
            | Q(assignee_email__icontains=query)
        )
    pairs = (
        qs.values_list("assignee_name", "assignee_email")
        .order_by("assignee_name", "assignee_email")
        .distinct()
    )
    suggestions = []
    for name, email in pairs:
        text = str(Assignee(name=name, email=email or None))
        if text not in suggestions:
            suggestions.append(text)
        if len(suggestions) >= limit:
            break
    return suggestions


def rename_assignee(actor, old_name, old_email, new_name, new_email):
    """Rewrite the identity on every assignment row of one person.

    Rows are matched by email when ``old_email`` is given, otherwise by
    exact name among rows without an email. A blank ``new_email`` clears
    the email. Returns the number of rows updated.
    """
    require_admin(actor, "rename assignees")

    new_name = " ".join((new_name or "").split()) or (old_name or "").strip()
    if not new_name:
        raise InvalidAssignee("A name is required.")
    new_email = _clean_email(new_email)
    if not (old_name or "").strip() and not (old_email or "").strip():
        raise InvalidAssignee("Identify the assignee by name or email.")

    with db_transaction.atomic():
        updated = _matching_rows(old_name, old_email).update(
            assignee_name=new_name, assignee_email=new_email
        )
        if updated:
            audit.record(
                "assignee_renamed",
                "assignee",
                old_email or old_name,
                actor=actor,
                description=(
                    f"Renamed assignee on {updated} assignment(s)."
                ),
                old_values={"name": old_name, "email": old_email},
                new_values={"name": new_name, "email": new_email},
            )

    logger.info(
        "Assignee %s renamed to %s on %d row(s)",
        old_email or old_name,
        new_email or new_name,
        updated,
    )
    return updated


def delete_assignee(actor, name, email):
    """Forget a person's returned assignments.

    Active assignments are kept: removing them would leave an assigned
    asset without its holder. Returns the number of rows deleted.
    """
    require_admin(actor, "delete assignees")
    if not (name or "").strip() and not (email or "").strip():
        raise InvalidAssignee("Identify the assignee by name or email.")

    with db_transaction.atomic():
        rows = _matching_rows(name, email).filter(returned_at__isnull=False)
        deleted, _ = rows.delete()
        if deleted:
            audit.record(
                "assignees_deleted",
                "assignee",
                email or name,
                actor=actor,
                description=f"Deleted {deleted} returned assignment(s).",
                old_values={"name": name, "email": email},
            )

    logger.info("Deleted %d assignment(s) of %s", deleted, email or name)
    return deleted
